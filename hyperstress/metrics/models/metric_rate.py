import msgspec


class MetricRate(msgspec.Struct, kw_only=True):
    kind: int
    label: str
    rate: float
