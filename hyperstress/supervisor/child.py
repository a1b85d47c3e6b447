import ctypes
import os
import signal
import sys
from typing import Callable, NoReturn

from hyperstress.errors import ResourceExhaustion
from hyperstress.logging import Logger
from hyperstress.logging.hyperstress_logging_models import (
    WorkerDebug,
    WorkerError,
    WorkerInfo,
)
from hyperstress.metrics import MetricsSlot
from hyperstress.workloads import WorkloadSet

from .exit_status import ExitStatus
from .worker_loop import WorkerLoop, format_failure

PR_SET_PDEATHSIG = 1
PR_SET_NAME = 15

OOM_SCORE_ADJ_PATH = "/proc/self/oom_score_adj"
OOM_SCORE_ADJ_MAX = 1000


def _libc() -> ctypes.CDLL | None:
    if not sys.platform.startswith("linux"):
        return None

    try:
        return ctypes.CDLL("libc.so.6", use_errno=True)

    except OSError:
        return None


def set_process_name(name: str) -> bool:
    libc = _libc()
    if libc is None:
        return False

    new_name = name.encode()[:15]

    # for `top` and /proc/self/comm
    buff = ctypes.create_string_buffer(len(new_name) + 1)
    buff.value = new_name

    return libc.prctl(PR_SET_NAME, ctypes.byref(buff), 0, 0, 0) == 0


def arm_parent_death_signal(parent_pid: int) -> bool:
    """
    Asks the kernel to SIGKILL this process when its parent exits. Returns
    False when the parent is already gone, in which case the caller must
    exit instead of starting work.
    """
    libc = _libc()
    if libc is not None:
        libc.prctl(PR_SET_PDEATHSIG, signal.SIGKILL, 0, 0, 0)

    return os.getppid() == parent_pid


def apply_oom_adjustment(path: str = OOM_SCORE_ADJ_PATH) -> bool:
    """Makes this process the preferred out-of-memory victim over its parent."""
    try:
        with open(path, "w") as oom_score_adj:
            oom_score_adj.write(str(OOM_SCORE_ADJ_MAX))

        return True

    except OSError:
        return False


def run_worker_process(
    stressor: str,
    workload_set: WorkloadSet,
    slot: MetricsSlot,
    parent_pid: int,
    keep_running: Callable[[], bool],
    op_budget: int | None = None,
    deadline: float | None = None,
    oom_adjust: bool = True,
    logger: Logger | None = None,
) -> NoReturn:
    """
    Body of a forked worker. Never returns: every path, including
    unexpected exceptions, leaves through ``os._exit``.
    """
    status = ExitStatus.FAILURE
    logger = logger or Logger()
    pid = os.getpid()

    try:
        signal.signal(signal.SIGTERM, signal.SIG_DFL)

        if not arm_parent_death_signal(parent_pid):
            status = ExitStatus.SUCCESS
            return

        set_process_name(f"hyperstress-{stressor}")

        oom_adjusted = oom_adjust and apply_oom_adjustment()

        loop = WorkerLoop(
            stressor,
            workload_set,
            slot,
            op_budget=op_budget,
            keep_running=keep_running,
            deadline=deadline,
            pid=pid,
            logger=logger,
        )

        signal.signal(signal.SIGINT, lambda signum, frame: loop.stop())

        with logger.context(name="worker") as ctx:
            ctx.log(
                WorkerDebug(
                    message=f"{stressor}: worker {slot.ordinal} started (oom adjusted: {oom_adjusted})",
                    stressor=stressor,
                    ordinal=slot.ordinal,
                    pid=pid,
                )
            )

        status = loop.run()

    except ResourceExhaustion as err:
        with logger.context(name="worker") as ctx:
            ctx.log(
                WorkerInfo(
                    message=f"{stressor}: worker {slot.ordinal} out of resources - {err}",
                    stressor=stressor,
                    ordinal=slot.ordinal,
                    pid=pid,
                )
            )

        status = ExitStatus.NO_RESOURCE

    except Exception as err:
        with logger.context(name="worker") as ctx:
            ctx.log(
                WorkerError(
                    message=f"{stressor}: worker {slot.ordinal} failed - {format_failure(err)}",
                    stressor=stressor,
                    ordinal=slot.ordinal,
                    pid=pid,
                )
            )

        status = ExitStatus.FAILURE

    finally:
        sys.stdout.flush()
        sys.stderr.flush()
        os._exit(status)
