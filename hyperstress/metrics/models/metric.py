import msgspec


class Metric(msgspec.Struct, kw_only=True):
    duration: float = 0.0
    count: float = 0.0


class AggregateMetric(msgspec.Struct, kw_only=True):
    duration: float = 0.0
    count: float = 0.0
    rate: float = 0.0
