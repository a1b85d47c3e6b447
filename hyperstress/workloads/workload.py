from abc import ABC, abstractmethod
from typing import Callable

from hyperstress.metrics import MetricView


def _always() -> bool:
    return True


class Workload(ABC):
    """
    A pluggable unit of stress work.

    ``run`` is invoked repeatedly by the worker loop and must add its own
    elapsed seconds and completed operations into ``metric`` rather than
    returning them, so timing can be amortized over many calls. It raises
    ``VerificationMismatch`` when it detects corrupted state.

    ``setup`` and ``teardown`` run inside the worker process, after the fork.
    ``keep_running`` is the run's continue flag for workloads that poll it
    between their own sub-operations.
    """

    name: str = "workload"
    label: str = "ops per sec"
    threads: int = 0

    def __init__(self) -> None:
        self.keep_running: Callable[[], bool] = _always

    def setup(self, keep_running: Callable[[], bool] = _always) -> None:
        self.keep_running = keep_running

    @abstractmethod
    def run(self, metric: MetricView) -> None: ...

    def teardown(self) -> None:
        pass
