from .metric import AggregateMetric, Metric
from .metric_rate import MetricRate
