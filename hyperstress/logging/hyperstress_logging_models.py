from .models import Entry, LogLevel


class SupervisorTrace(Entry, kw_only=True):
    stressor: str
    workers: int
    level: LogLevel = LogLevel.TRACE


class SupervisorDebug(Entry, kw_only=True):
    stressor: str
    workers: int
    level: LogLevel = LogLevel.DEBUG


class SupervisorInfo(Entry, kw_only=True):
    stressor: str
    workers: int
    level: LogLevel = LogLevel.INFO


class SupervisorError(Entry, kw_only=True):
    stressor: str
    workers: int
    level: LogLevel = LogLevel.ERROR


class WorkerDebug(Entry, kw_only=True):
    stressor: str
    ordinal: int
    pid: int
    level: LogLevel = LogLevel.DEBUG


class WorkerInfo(Entry, kw_only=True):
    stressor: str
    ordinal: int
    pid: int
    level: LogLevel = LogLevel.INFO


class WorkerError(Entry, kw_only=True):
    stressor: str
    ordinal: int
    pid: int
    level: LogLevel = LogLevel.ERROR


class WorkerFault(Entry, kw_only=True):
    stressor: str
    ordinal: int
    pid: int
    outcome: str
    signal: int | None = None
    exit_code: int | None = None
    level: LogLevel = LogLevel.WARN


class MemoryInfo(Entry, kw_only=True):
    total_mb: float
    available_mb: float
    used_mb: float
    swap_used_mb: float
    level: LogLevel = LogLevel.DEBUG


class MetricInfo(Entry, kw_only=True):
    stressor: str
    kind: int
    label: str
    rate: float
    level: LogLevel = LogLevel.INFO


class ProbeDebug(Entry, kw_only=True):
    path: str
    elapsed: float
    level: LogLevel = LogLevel.DEBUG
