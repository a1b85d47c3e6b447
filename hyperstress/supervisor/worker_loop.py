import time
import traceback
from typing import Callable

from hyperstress.errors import VerificationMismatch
from hyperstress.logging import Logger
from hyperstress.logging.hyperstress_logging_models import WorkerDebug, WorkerError
from hyperstress.metrics import MetricsSlot
from hyperstress.workloads import WorkloadSet

from .exit_status import ExitStatus


def _always() -> bool:
    return True


class WorkerLoop:
    """
    Repeated full passes over a workload set, writing only to one slot.

    The continue flag, the private op budget and the run deadline are
    checked before every pass, so once the flag is cleared no new pass
    starts. One bogo op is counted per completed pass.
    """

    def __init__(
        self,
        stressor: str,
        workload_set: WorkloadSet,
        slot: MetricsSlot,
        op_budget: int | None = None,
        keep_running: Callable[[], bool] = _always,
        deadline: float | None = None,
        pid: int = 0,
        logger: Logger | None = None,
    ) -> None:
        self._stressor = stressor
        self._workload_set = workload_set
        self._slot = slot
        self._op_budget = op_budget
        self._keep_running = keep_running
        self._deadline = deadline
        self._pid = pid
        self._logger = logger or Logger()
        self._stopped = False
        self.passes = 0

    def stop(self):
        self._stopped = True

    def active(self) -> bool:
        if self._stopped or not self._keep_running():
            return False

        return self._deadline is None or time.monotonic() < self._deadline

    def budget_exhausted(self) -> bool:
        return self._op_budget is not None and self._slot.bogo_ops >= self._op_budget

    def should_continue(self) -> bool:
        return self.active() and not self.budget_exhausted()

    def run(self) -> ExitStatus:
        self._workload_set.setup(self.active)

        try:
            while self.should_continue():
                for kind, workload in enumerate(self._workload_set):
                    workload.run(self._slot[kind])

                self._slot.increment_bogo()
                self.passes += 1

        except VerificationMismatch as err:
            with self._logger.context(name="worker_loop") as ctx:
                ctx.log(
                    WorkerError(
                        message=f"{self._stressor}: {err}",
                        stressor=self._stressor,
                        ordinal=self._slot.ordinal,
                        pid=self._pid,
                    )
                )

            return ExitStatus.FAILURE

        finally:
            self._workload_set.teardown()

        with self._logger.context(name="worker_loop") as ctx:
            ctx.log(
                WorkerDebug(
                    message=f"{self._stressor}: completed {self.passes} passes",
                    stressor=self._stressor,
                    ordinal=self._slot.ordinal,
                    pid=self._pid,
                )
            )

        return ExitStatus.SUCCESS


def format_failure(err: BaseException) -> str:
    return "".join(traceback.format_exception(err)).rstrip()
