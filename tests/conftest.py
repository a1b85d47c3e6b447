"""
Shared fixtures and workloads for the hyperstress test suite.

Supervisor tests fork real worker processes, so the workloads below
coordinate across processes only through files created with O_EXCL,
which exactly one process can win.
"""

import os
import signal
import time

import pytest

from hyperstress.env import Env
from hyperstress.errors import VerificationMismatch
from hyperstress.logging import Logger, LoggingConfig
from hyperstress.metrics import MetricView
from hyperstress.workloads import Workload


def claim_marker(path: str) -> bool:
    """True for the single process that creates ``path`` first."""
    try:
        fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)

    except FileExistsError:
        return False

    os.close(fd)
    return True


class CountingWorkload(Workload):
    """One op per call with a fixed, fake duration."""

    def __init__(self, name: str = "counting", duration: float = 0.001, sleep: float = 0.0):
        super().__init__()
        self.name = name
        self.label = f"{name} ops per sec"
        self.duration = duration
        self.sleep = sleep
        self.setup_calls = 0
        self.teardown_calls = 0

    def setup(self, keep_running=None):
        if keep_running is not None:
            super().setup(keep_running)

        self.setup_calls += 1

    def run(self, metric: MetricView) -> None:
        if self.sleep:
            time.sleep(self.sleep)

        metric.add(self.duration, 1.0)

    def teardown(self) -> None:
        self.teardown_calls += 1


class SelfSignalWorkload(CountingWorkload):
    """The first process to claim the marker sends itself ``signum``."""

    def __init__(self, marker: str, signum: int = signal.SIGKILL):
        super().__init__(name="self_signal")
        self.marker = marker
        self.signum = signum

    def run(self, metric: MetricView) -> None:
        if claim_marker(self.marker):
            os.kill(os.getpid(), self.signum)
            time.sleep(5)

        super().run(metric)


class MismatchWorkload(CountingWorkload):
    """The first process to claim the marker reports corrupted state."""

    def __init__(self, marker: str):
        super().__init__(name="mismatch")
        self.marker = marker

    def run(self, metric: MetricView) -> None:
        if claim_marker(self.marker):
            raise VerificationMismatch(self.name, 0x1, 0x2)

        super().run(metric)


class StuckWorkload(CountingWorkload):
    """Blocks far longer than any test waits, ignoring the continue flag."""

    def __init__(self):
        super().__init__(name="stuck")

    def run(self, metric: MetricView) -> None:
        time.sleep(60)
        super().run(metric)


@pytest.fixture(autouse=True)
def quiet_logging():
    config = LoggingConfig()
    previous = config.level
    config.update(log_level="critical")

    yield config

    config.update(log_level=previous.value.lower())


@pytest.fixture
def logger() -> Logger:
    logger = Logger()
    yield logger
    logger.close()


@pytest.fixture
def fast_env(tmp_path) -> Env:
    return Env(
        HYPERSTRESS_WORKERS=2,
        HYPERSTRESS_TIMEOUT="10s",
        HYPERSTRESS_MAX_RESTARTS=2,
        HYPERSTRESS_FORK_RETRIES=5,
        HYPERSTRESS_REAP_POLL_INTERVAL="5ms",
        HYPERSTRESS_KILL_GRACE="50ms",
        HYPERSTRESS_SHUTDOWN_GRACE="200ms",
        HYPERSTRESS_OOM_ADJUST=False,
        HYPERSTRESS_LOGS_DIRECTORY=str(tmp_path),
    )


@pytest.fixture
def marker(tmp_path) -> str:
    return str(tmp_path / "claimed.marker")


class ParentFailureWorkload(CountingWorkload):
    """Raises an unexpected error only inside the process that built it."""

    def __init__(self):
        super().__init__(name="parent_failure")
        self.owner_pid = os.getpid()

    def run(self, metric: MetricView) -> None:
        if os.getpid() == self.owner_pid:
            raise RuntimeError("workload error in parent batch")

        super().run(metric)


class KillAfterCancelWorkload(CountingWorkload):
    """Waits for the continue flag to clear, then one process SIGKILLs itself."""

    def __init__(self, marker: str):
        super().__init__(name="kill_after_cancel")
        self.marker = marker

    def run(self, metric: MetricView) -> None:
        while self.keep_running():
            time.sleep(0.005)

        if claim_marker(self.marker):
            os.kill(os.getpid(), signal.SIGKILL)
            time.sleep(5)

        super().run(metric)
