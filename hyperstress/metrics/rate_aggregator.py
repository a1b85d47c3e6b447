from typing import List, Sequence

from .models import MetricRate
from .shared_metrics_region import SharedMetricsRegion
from .sinks import MetricsSink


class RateAggregator:
    def __init__(self, sink: MetricsSink) -> None:
        self._sink = sink
        self._next_kind = 0

    def report(self, label: str, rate: float, kind: int | None = None):
        if kind is None:
            kind = self._next_kind

        self._sink.set(kind, label, rate)
        self._next_kind = kind + 1

    def aggregate_and_report(
        self,
        region: SharedMetricsRegion,
        labels: Sequence[str],
    ) -> List[MetricRate]:
        """
        Sums every slot of a fully reaped region and reports one rate per
        workload kind, in ordinal order.
        """
        if len(labels) != region.kind_count:
            raise ValueError(
                f"Got {len(labels)} labels for a region with {region.kind_count} workload kinds"
            )

        rates: List[MetricRate] = []

        for kind, (label, metric) in enumerate(zip(labels, region.aggregate())):
            self.report(label, metric.rate, kind=kind)
            rates.append(MetricRate(kind=kind, label=label, rate=metric.rate))

        return rates
