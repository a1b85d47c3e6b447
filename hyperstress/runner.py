from typing import List

import msgspec

from hyperstress.capability import SupportProbe
from hyperstress.env import Env, load_env
from hyperstress.errors import Unsupported
from hyperstress.logging import Logger, LoggingConfig
from hyperstress.logging.hyperstress_logging_models import SupervisorInfo
from hyperstress.metrics import MetricRate, MetricsSink
from hyperstress.state import ProcessStateSink
from hyperstress.supervisor import ExitStatus, WorkerSupervisor
from hyperstress.workloads import WorkloadSet


class StressResult(msgspec.Struct, kw_only=True):
    stressor: str
    status: ExitStatus
    rates: List[MetricRate] = msgspec.field(default_factory=list)
    bogo_ops: int = 0
    workers_started: int = 0
    restarts: int = 0

    @property
    def skipped(self) -> bool:
        return self.status.is_skip


def run_stressor(
    name: str,
    workload_set: WorkloadSet,
    env: Env | None = None,
    probe: SupportProbe | None = None,
    metrics_sink: MetricsSink | None = None,
    state_sink: ProcessStateSink | None = None,
) -> StressResult:
    if env is None:
        env = load_env(Env)

    logging_config = LoggingConfig()
    logging_config.update(
        log_directory=env.HYPERSTRESS_LOGS_DIRECTORY,
        log_level=env.HYPERSTRESS_LOG_LEVEL,
    )

    logger = Logger()

    if probe is not None:
        try:
            probe.supported(name)

        except Unsupported as err:
            with logger.context(name="runner") as ctx:
                ctx.log(
                    SupervisorInfo(
                        message=str(err),
                        stressor=name,
                        workers=0,
                    )
                )

            return StressResult(
                stressor=name,
                status=ExitStatus.NOT_IMPLEMENTED,
            )

    supervisor = WorkerSupervisor(
        name,
        env=env,
        metrics_sink=metrics_sink,
        state_sink=state_sink,
        logger=logger,
    )

    status = supervisor.run(
        env.HYPERSTRESS_WORKERS,
        workload_set,
        total_op_budget=env.HYPERSTRESS_OPS,
        timeout=env.seconds("HYPERSTRESS_TIMEOUT"),
    )

    return StressResult(
        stressor=name,
        status=status,
        rates=supervisor.rates,
        bogo_ops=supervisor.bogo_ops,
        workers_started=supervisor.workers_started,
        restarts=supervisor.restarts,
    )
