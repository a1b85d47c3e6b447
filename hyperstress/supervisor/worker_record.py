from dataclasses import dataclass
from enum import Enum

from .wait_status import WaitResult, WorkerOutcome


class WorkerState(Enum):
    RUNNING = "running"
    ESCALATING = "escalating"
    REAPED = "reaped"


@dataclass(slots=True)
class WorkerRecord:
    pid: int
    ordinal: int
    op_budget: int | None = None
    replaces: int | None = None
    state: WorkerState = WorkerState.RUNNING
    escalated: bool = False
    result: WaitResult | None = None

    @property
    def alive(self) -> bool:
        return self.state != WorkerState.REAPED

    @property
    def outcome(self) -> WorkerOutcome | None:
        if self.result is None:
            return None

        return self.result.outcome

    def reaped(self, result: WaitResult):
        self.state = WorkerState.REAPED
        self.result = result
