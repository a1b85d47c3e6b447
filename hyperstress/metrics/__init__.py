from .metrics_slot import MetricsSlot, MetricView
from .models import AggregateMetric, Metric, MetricRate
from .rate_aggregator import RateAggregator
from .shared_metrics_region import SharedMetricsRegion
from .sinks import LoggingMetricsSink, MetricsSink, MetricsTable
