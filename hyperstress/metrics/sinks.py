from typing import Dict, List, Protocol

from hyperstress.logging import Logger
from hyperstress.logging.hyperstress_logging_models import MetricInfo

from .models import MetricRate


class MetricsSink(Protocol):
    def set(self, kind: int, label: str, rate: float) -> None: ...


class MetricsTable:
    def __init__(self) -> None:
        self._rates: Dict[int, MetricRate] = {}

    def set(self, kind: int, label: str, rate: float) -> None:
        self._rates[kind] = MetricRate(kind=kind, label=label, rate=rate)

    def get(self, kind: int) -> MetricRate | None:
        return self._rates.get(kind)

    @property
    def rates(self) -> List[MetricRate]:
        return [self._rates[kind] for kind in sorted(self._rates)]


class LoggingMetricsSink:
    def __init__(
        self,
        stressor: str,
        logger: Logger | None = None,
    ) -> None:
        self._stressor = stressor
        self._logger = logger or Logger()

    def set(self, kind: int, label: str, rate: float) -> None:
        with self._logger.context(name="metrics") as ctx:
            ctx.log(
                MetricInfo(
                    message=f"{self._stressor}: {rate:.2f} {label}",
                    stressor=self._stressor,
                    kind=kind,
                    label=label,
                    rate=rate,
                )
            )
