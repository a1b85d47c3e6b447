import mmap
import struct
from typing import List

from .models import Metric

_METRIC = struct.Struct("=dd")
_COUNTER = struct.Struct("=Q")


class MetricView:
    """
    A (duration, count) pair living in shared memory.

    Reads and writes go straight to the mapping, so a workload accumulating
    into ``duration`` and ``count`` is visible to the supervisor once the
    owning worker has been reaped.
    """

    __slots__ = ("_buffer", "_offset")

    def __init__(self, buffer: mmap.mmap, offset: int) -> None:
        self._buffer = buffer
        self._offset = offset

    @property
    def duration(self) -> float:
        return _METRIC.unpack_from(self._buffer, self._offset)[0]

    @duration.setter
    def duration(self, value: float):
        struct.pack_into("=d", self._buffer, self._offset, value)

    @property
    def count(self) -> float:
        return _METRIC.unpack_from(self._buffer, self._offset)[1]

    @count.setter
    def count(self, value: float):
        struct.pack_into("=d", self._buffer, self._offset + 8, value)

    def add(self, duration: float, count: float):
        current_duration, current_count = _METRIC.unpack_from(self._buffer, self._offset)
        _METRIC.pack_into(
            self._buffer,
            self._offset,
            current_duration + duration,
            current_count + count,
        )

    def snapshot(self) -> Metric:
        duration, count = _METRIC.unpack_from(self._buffer, self._offset)
        return Metric(duration=duration, count=count)


class MetricsSlot:
    """
    One worker's exclusive portion of the shared region: a bogo-op counter
    followed by one ``MetricView`` per workload kind.
    """

    HEADER_SIZE = _COUNTER.size
    METRIC_SIZE = _METRIC.size

    def __init__(
        self,
        buffer: mmap.mmap,
        ordinal: int,
        offset: int,
        kind_count: int,
    ) -> None:
        self.ordinal = ordinal
        self._buffer = buffer
        self._offset = offset
        self._kind_count = kind_count

    @classmethod
    def size(cls, kind_count: int) -> int:
        return cls.HEADER_SIZE + kind_count * cls.METRIC_SIZE

    def __len__(self):
        return self._kind_count

    def __getitem__(self, kind: int) -> MetricView:
        if kind < 0 or kind >= self._kind_count:
            raise IndexError(
                f"Workload kind {kind} out of range for slot with {self._kind_count} kinds"
            )

        return MetricView(
            self._buffer,
            self._offset + self.HEADER_SIZE + kind * self.METRIC_SIZE,
        )

    @property
    def bogo_ops(self) -> int:
        return _COUNTER.unpack_from(self._buffer, self._offset)[0]

    def increment_bogo(self, amount: int = 1):
        _COUNTER.pack_into(self._buffer, self._offset, self.bogo_ops + amount)

    def metrics(self) -> List[Metric]:
        return [self[kind].snapshot() for kind in range(self._kind_count)]
