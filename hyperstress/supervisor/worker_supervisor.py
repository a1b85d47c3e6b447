import os
import signal
import threading
import time
from typing import Dict, List

from hyperstress.env import Env
from hyperstress.errors import ResourceExhaustion, TransientForkFailure
from hyperstress.logging import Logger
from hyperstress.logging.hyperstress_logging_models import (
    SupervisorDebug,
    SupervisorError,
    SupervisorInfo,
    SupervisorTrace,
    WorkerError,
    WorkerFault,
)
from hyperstress.metrics import (
    MetricRate,
    MetricsSink,
    LoggingMetricsSink,
    RateAggregator,
    SharedMetricsRegion,
)
from hyperstress.monitoring import MemorySnapshot
from hyperstress.state import ProcessStateSink, ProcState, RecordingStateSink
from hyperstress.workloads import WorkloadSet

from .child import run_worker_process
from .exit_status import ExitStatus
from .fork_retry import ForkRetry, ForkRetryConfig
from .wait_status import WaitResult, WorkerOutcome, classify_wait_status
from .worker_loop import WorkerLoop, format_failure
from .worker_record import WorkerRecord, WorkerState


class WorkerSupervisor:
    """
    Forks and reaps the worker processes of one stress run.

    The shared metrics region is mapped before the first fork with one slot
    per initial worker, one per possible replacement and one for the batch
    the supervisor runs itself. Children that die from SIGKILL before the run
    is cancelled are assumed to be out-of-memory victims and replaced with a
    fresh ordinal and slot, up to ``max_restarts``. Once every child has been
    reaped the region is aggregated into one rate per workload kind.
    """

    def __init__(
        self,
        stressor: str,
        env: Env | None = None,
        metrics_sink: MetricsSink | None = None,
        state_sink: ProcessStateSink | None = None,
        fork_retry: ForkRetry | None = None,
        logger: Logger | None = None,
        run_in_parent: bool | None = None,
        max_restarts: int | None = None,
    ) -> None:
        if env is None:
            env = Env()

        self.stressor = stressor
        self._logger = logger or Logger()
        self._metrics_sink = metrics_sink or LoggingMetricsSink(stressor, self._logger)
        self._state_sink = state_sink or RecordingStateSink(self._logger)

        self._fork_retry = fork_retry or ForkRetry(
            ForkRetryConfig(
                max_attempts=env.HYPERSTRESS_FORK_RETRIES,
                base_delay=env.HYPERSTRESS_FORK_RETRY_BASE_DELAY,
                max_delay=env.HYPERSTRESS_FORK_RETRY_MAX_DELAY,
            )
        )

        self._run_in_parent = (
            env.HYPERSTRESS_RUN_IN_PARENT if run_in_parent is None else run_in_parent
        )
        self._max_restarts = (
            env.HYPERSTRESS_MAX_RESTARTS if max_restarts is None else max_restarts
        )
        self._poll_interval = env.seconds("HYPERSTRESS_REAP_POLL_INTERVAL")
        self._kill_grace = env.seconds("HYPERSTRESS_KILL_GRACE")
        self._shutdown_grace = env.seconds("HYPERSTRESS_SHUTDOWN_GRACE")
        self._oom_adjust = env.HYPERSTRESS_OOM_ADJUST

        self.records: List[WorkerRecord] = []
        self.restarts = 0
        self.fork_failures = 0
        self.bogo_ops = 0
        self.rates: List[MetricRate] = []

        self._region: SharedMetricsRegion | None = None
        self._workload_set: WorkloadSet | None = None
        self._deadline: float | None = None
        self._cancelled_at: float | None = None
        self._received_signal: int | None = None
        self._next_ordinal = 0
        self._worker_count = 0
        self._status = ExitStatus.SUCCESS
        self._parent_pid = os.getpid()

    @property
    def workers_started(self) -> int:
        return len(self.records)

    @property
    def cancelled(self) -> bool:
        return self._region is None or not self._region.keep_running

    def cancel(self, reason: str = "cancellation requested"):
        if self._region is None or self._region.released:
            return

        if self._region.keep_running:
            self._region.keep_running = False
            self._log(
                SupervisorDebug(
                    message=f"{self.stressor}: {reason}, stopping workers",
                    stressor=self.stressor,
                    workers=self._worker_count,
                )
            )

    def run(
        self,
        worker_count: int,
        workload_set: WorkloadSet,
        total_op_budget: int = 0,
        timeout: float | None = None,
    ) -> ExitStatus:
        self._worker_count = worker_count
        self._workload_set = workload_set
        self._parent_pid = os.getpid()
        self._status = ExitStatus.SUCCESS
        self.records = []
        self.restarts = 0
        self.fork_failures = 0

        slot_count = worker_count + self._max_restarts + 1

        try:
            region = SharedMetricsRegion.allocate(slot_count, len(workload_set))

        except ResourceExhaustion as err:
            self._log(
                SupervisorInfo(
                    message=f"{self.stressor}: {err}, skipping stressor",
                    stressor=self.stressor,
                    workers=worker_count,
                )
            )

            return ExitStatus.NO_RESOURCE

        self._region = region
        self._deadline = time.monotonic() + timeout if timeout else None
        self._cancelled_at = None
        self._next_ordinal = worker_count
        self._received_signal = None

        previous_handlers = self._install_signal_handlers()

        try:
            self._state_sink.set_state(self.stressor, ProcState.RUN)

            participants = worker_count + (1 if self._run_in_parent else 0)
            budgets = self.partition_budget(total_op_budget, participants)

            for ordinal in range(worker_count):
                self._start_worker(ordinal, budgets[ordinal])

            if worker_count > 0 and self.workers_started == 0:
                self._log(
                    SupervisorError(
                        message=f"{self.stressor}: could not start a single worker, skipping stressor",
                        stressor=self.stressor,
                        workers=worker_count,
                    )
                )

                self._status = ExitStatus.NO_RESOURCE

            else:
                if self._run_in_parent:
                    self._run_parent_batch(slot_count - 1, budgets[-1])

                self._reap_all()

        finally:
            self._restore_signal_handlers(previous_handlers)

            self.cancel("run finished")
            for record in self.records:
                if record.alive:
                    self._escalate(record)

            self._state_sink.set_state(self.stressor, ProcState.DEINIT)

            self.bogo_ops = region.total_bogo_ops
            self.rates = RateAggregator(self._metrics_sink).aggregate_and_report(
                region,
                workload_set.labels,
            )

            region.release()
            self._region = None
            self._state_sink.set_state(self.stressor, ProcState.EXIT)

        return self._status

    @staticmethod
    def partition_budget(total_op_budget: int, participants: int) -> List[int | None]:
        """
        Splits the run's op budget across workers, remainder to the lowest
        ordinals. A budget of 0 means unbounded.
        """
        if participants < 1:
            return []

        if total_op_budget <= 0:
            return [None] * participants

        share, remainder = divmod(total_op_budget, participants)
        return [share + (1 if idx < remainder else 0) for idx in range(participants)]

    def _start_worker(
        self,
        ordinal: int,
        op_budget: int | None,
        replaces: int | None = None,
    ) -> WorkerRecord | None:
        region = self._region
        slot = region.slot_for(ordinal)

        try:
            pid = self._fork_retry.fork(keep_running=lambda: region.keep_running)

        except TransientForkFailure as err:
            self.fork_failures += 1
            self._log(
                SupervisorError(
                    message=f"{self.stressor}: giving up on worker {ordinal} - {err}",
                    stressor=self.stressor,
                    workers=self._worker_count,
                )
            )

            return None

        except OSError as err:
            self.fork_failures += 1
            self._log(
                SupervisorError(
                    message=f"{self.stressor}: fork failed for worker {ordinal}, errno={err.errno} ({err.strerror})",
                    stressor=self.stressor,
                    workers=self._worker_count,
                )
            )

            return None

        if pid is None:
            return None

        if pid == 0:
            run_worker_process(
                self.stressor,
                self._workload_set,
                slot,
                self._parent_pid,
                keep_running=lambda: region.keep_running,
                op_budget=op_budget,
                deadline=self._deadline,
                oom_adjust=self._oom_adjust,
                logger=self._logger,
            )

        record = WorkerRecord(
            pid=pid,
            ordinal=ordinal,
            op_budget=op_budget,
            replaces=replaces,
        )
        self.records.append(record)

        self._log(
            SupervisorTrace(
                message=f"{self.stressor}: started worker {ordinal} (pid {pid})",
                stressor=self.stressor,
                workers=self._worker_count,
            )
        )

        return record

    def _run_parent_batch(self, ordinal: int, op_budget: int | None):
        region = self._region

        loop = WorkerLoop(
            self.stressor,
            self._workload_set,
            region.slot_for(ordinal),
            op_budget=op_budget,
            keep_running=lambda: region.keep_running,
            deadline=self._deadline,
            pid=self._parent_pid,
            logger=self._logger,
        )

        try:
            status = loop.run()

        except Exception as err:
            self._log(
                WorkerError(
                    message=f"{self.stressor}: parent batch failed - {format_failure(err)}",
                    stressor=self.stressor,
                    ordinal=ordinal,
                    pid=self._parent_pid,
                )
            )

            status = ExitStatus.FAILURE

        if status == ExitStatus.FAILURE:
            self._status = ExitStatus.FAILURE

    def _reap_all(self):
        while True:
            live = [record for record in self.records if record.alive]
            if not live:
                return

            now = time.monotonic()
            if self._deadline is not None and now >= self._deadline:
                self.cancel("run time budget reached")

            if self.cancelled and self._cancelled_at is None:
                self._cancelled_at = now

                if self._received_signal is not None:
                    self._log(
                        SupervisorDebug(
                            message=f"{self.stressor}: received {signal.Signals(self._received_signal).name}, stopping workers",
                            stressor=self.stressor,
                            workers=self._worker_count,
                        )
                    )

            for record in live:
                self._poll(record)

            if (
                self._cancelled_at is not None
                and time.monotonic() - self._cancelled_at >= self._shutdown_grace
            ):
                for record in self.records:
                    if record.alive:
                        self._escalate(record)

                continue

            time.sleep(self._poll_interval)

    def _poll(self, record: WorkerRecord):
        try:
            pid, status = os.waitpid(record.pid, os.WNOHANG)

        except ChildProcessError:
            record.reaped(WaitResult(WorkerOutcome.LOST))
            return

        except OSError as err:
            self._log(
                SupervisorDebug(
                    message=f"{self.stressor}: waitpid() on worker {record.ordinal} failed, errno={err.errno} ({err.strerror})",
                    stressor=self.stressor,
                    workers=self._worker_count,
                )
            )

            self._escalate(record)
            return

        if pid == 0:
            return

        self._handle_exit(record, classify_wait_status(status))

    def _escalate(self, record: WorkerRecord):
        """
        SIGTERM, a short grace period, then SIGKILL, then a blocking wait so
        no zombie is left behind.
        """
        if not record.alive:
            return

        record.escalated = True
        record.state = WorkerState.ESCALATING

        if not self._signal(record, signal.SIGTERM):
            self._block_wait(record)
            return

        grace_ends = time.monotonic() + self._kill_grace
        while time.monotonic() < grace_ends:
            try:
                pid, status = os.waitpid(record.pid, os.WNOHANG)

            except ChildProcessError:
                record.reaped(WaitResult(WorkerOutcome.LOST))
                return

            if pid != 0:
                self._handle_exit(record, classify_wait_status(status))
                return

            time.sleep(min(self._poll_interval, 0.01))

        self._signal(record, signal.SIGKILL)
        self._block_wait(record)

    def _block_wait(self, record: WorkerRecord):
        try:
            _, status = os.waitpid(record.pid, 0)

        except ChildProcessError:
            record.reaped(WaitResult(WorkerOutcome.LOST))
            return

        self._handle_exit(record, classify_wait_status(status))

    def _signal(self, record: WorkerRecord, signum: int) -> bool:
        try:
            os.kill(record.pid, signum)
            return True

        except ProcessLookupError:
            return False

    def _handle_exit(self, record: WorkerRecord, result: WaitResult):
        record.reaped(result)

        outcome = result.outcome
        if outcome == WorkerOutcome.EXITED:
            return

        if record.escalated and outcome in (
            WorkerOutcome.KILLED,
            WorkerOutcome.SIGNALED,
            WorkerOutcome.LOST,
        ):
            self._log_fault(record, result, "terminated by supervisor")
            return

        if outcome == WorkerOutcome.NO_RESOURCE:
            self._log_fault(record, result, "out of resources, slot abandoned")

        elif outcome == WorkerOutcome.APPLICATION_FAILURE:
            self._log_fault(record, result, "reported a failure")
            self._status = ExitStatus.FAILURE

        elif outcome == WorkerOutcome.KILLED:
            self._handle_killed(record, result)

        elif outcome == WorkerOutcome.SIGNALED:
            self._log_fault(record, result, f"died from {result.signal_name}")
            self._status = ExitStatus.FAILURE

        else:
            self._log_fault(record, result, "was lost")

    def _handle_killed(self, record: WorkerRecord, result: WaitResult):
        if self.cancelled:
            self._log_fault(record, result, "killed after cancellation")
            return

        remaining: int | None = None
        if record.op_budget is not None:
            remaining = record.op_budget - self._region.slot_for(record.ordinal).bogo_ops

            if remaining <= 0:
                self._log_fault(record, result, "killed after completing its budget")
                return

        if self.restarts >= self._max_restarts:
            self._log_fault(
                record,
                result,
                f"killed and restart limit of {self._max_restarts} reached",
            )
            self._status = ExitStatus.FAILURE
            return

        with self._logger.context(name="worker_supervisor") as ctx:
            ctx.log(
                MemorySnapshot.capture().to_entry(
                    f"{self.stressor}: system memory at worker {record.ordinal} kill"
                )
            )

        self._log_fault(
            record,
            result,
            "assuming killed by OOM killer, restarting again",
        )

        self.restarts += 1
        ordinal = self._next_ordinal
        self._next_ordinal += 1

        self._start_worker(ordinal, remaining, replaces=record.ordinal)

    def _install_signal_handlers(self) -> Dict[int, object]:
        if threading.current_thread() is not threading.main_thread():
            return {}

        previous: Dict[int, object] = {}
        for signum in (signal.SIGINT, signal.SIGTERM):
            previous[signum] = signal.signal(signum, self._handle_signal)

        return previous

    def _handle_signal(self, signum: int, frame):
        # must not log, may interrupt a stream holding its write lock
        self._received_signal = signum

        if self._region is not None and not self._region.released:
            self._region.keep_running = False

    def _restore_signal_handlers(self, previous: Dict[int, object]):
        for signum, handler in previous.items():
            signal.signal(signum, handler)

    def _log_fault(self, record: WorkerRecord, result: WaitResult, reason: str):
        self._log(
            WorkerFault(
                message=f"{self.stressor}: worker {record.ordinal} (pid {record.pid}) {reason}",
                stressor=self.stressor,
                ordinal=record.ordinal,
                pid=record.pid,
                outcome=result.outcome.value,
                signal=result.signal,
                exit_code=result.exit_code,
            )
        )

    def _log(self, entry):
        with self._logger.context(name="worker_supervisor") as ctx:
            ctx.log(entry)
