import os
import signal
from dataclasses import dataclass
from enum import Enum

from .exit_status import ExitStatus


class WorkerOutcome(Enum):
    EXITED = "exited"
    NO_RESOURCE = "no_resource"
    APPLICATION_FAILURE = "application_failure"
    KILLED = "killed"
    SIGNALED = "signaled"
    LOST = "lost"


@dataclass(slots=True, frozen=True)
class WaitResult:
    outcome: WorkerOutcome
    exit_code: int | None = None
    signal: int | None = None

    @property
    def signal_name(self) -> str | None:
        if self.signal is None:
            return None

        try:
            return signal.Signals(self.signal).name

        except ValueError:
            return f"signal {self.signal}"


def classify_wait_status(status: int) -> WaitResult:
    """
    Maps a raw ``waitpid`` status to a worker outcome. SIGKILL is the
    kill-class signal: with no other explanation it is assumed to come from
    the out-of-memory killer.
    """
    if os.WIFSIGNALED(status):
        signum = os.WTERMSIG(status)
        if signum == signal.SIGKILL:
            return WaitResult(WorkerOutcome.KILLED, signal=signum)

        return WaitResult(WorkerOutcome.SIGNALED, signal=signum)

    if os.WIFEXITED(status):
        exit_code = os.WEXITSTATUS(status)
        if exit_code == ExitStatus.SUCCESS:
            return WaitResult(WorkerOutcome.EXITED, exit_code=exit_code)

        if exit_code == ExitStatus.NO_RESOURCE:
            return WaitResult(WorkerOutcome.NO_RESOURCE, exit_code=exit_code)

        return WaitResult(WorkerOutcome.APPLICATION_FAILURE, exit_code=exit_code)

    return WaitResult(WorkerOutcome.LOST)
