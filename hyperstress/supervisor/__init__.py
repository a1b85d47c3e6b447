from .child import (
    apply_oom_adjustment,
    arm_parent_death_signal,
    run_worker_process,
    set_process_name,
)
from .exit_status import ExitStatus
from .fork_retry import ForkRetry, ForkRetryConfig, JitterStrategy
from .wait_status import WaitResult, WorkerOutcome, classify_wait_status
from .worker_loop import WorkerLoop
from .worker_record import WorkerRecord, WorkerState
from .worker_supervisor import WorkerSupervisor
