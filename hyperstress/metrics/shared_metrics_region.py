import mmap
import struct
from typing import List

from hyperstress.errors import ResourceExhaustion

from .metrics_slot import MetricsSlot
from .models import AggregateMetric

_FLAG = struct.Struct("=q")


class SharedMetricsRegion:
    """
    Anonymous shared mapping holding one ``MetricsSlot`` per worker ordinal.

    Allocated once before any fork so every worker inherits the same pages.
    Each worker writes only its own slot and the supervisor reads all slots
    after every worker has been reaped, so no locking is required. The
    header carries the run's continue flag, written only by the supervisor.
    """

    HEADER_SIZE = 8

    def __init__(
        self,
        buffer: mmap.mmap,
        slot_count: int,
        kind_count: int,
    ) -> None:
        self._buffer = buffer
        self.slot_count = slot_count
        self.kind_count = kind_count
        self._slot_size = MetricsSlot.size(kind_count)

    @classmethod
    def allocate(cls, slot_count: int, kind_count: int):
        if slot_count < 1 or kind_count < 1:
            raise ResourceExhaustion(
                f"Cannot map shared metrics for {slot_count} slots and {kind_count} workload kinds"
            )

        size = cls.HEADER_SIZE + slot_count * MetricsSlot.size(kind_count)

        try:
            buffer = mmap.mmap(
                -1,
                size,
                flags=mmap.MAP_SHARED | mmap.MAP_ANONYMOUS,
                prot=mmap.PROT_READ | mmap.PROT_WRITE,
            )

        except (OSError, ValueError, OverflowError) as err:
            raise ResourceExhaustion(
                f"Could not mmap shared metrics of {size} bytes",
                cause=err,
            ) from err

        region = cls(buffer, slot_count, kind_count)
        region.keep_running = True

        return region

    @property
    def size(self) -> int:
        return len(self._buffer)

    @property
    def released(self) -> bool:
        return self._buffer.closed

    @property
    def keep_running(self) -> bool:
        return _FLAG.unpack_from(self._buffer, 0)[0] == 1

    @keep_running.setter
    def keep_running(self, value: bool):
        _FLAG.pack_into(self._buffer, 0, 1 if value else 0)

    def slot_for(self, ordinal: int) -> MetricsSlot:
        if ordinal < 0 or ordinal >= self.slot_count:
            raise IndexError(
                f"Worker ordinal {ordinal} out of range for region with {self.slot_count} slots"
            )

        return MetricsSlot(
            self._buffer,
            ordinal,
            self.HEADER_SIZE + ordinal * self._slot_size,
            self.kind_count,
        )

    @property
    def total_bogo_ops(self) -> int:
        return sum(self.slot_for(ordinal).bogo_ops for ordinal in range(self.slot_count))

    def aggregate(self) -> List[AggregateMetric]:
        totals = [AggregateMetric() for _ in range(self.kind_count)]

        for ordinal in range(self.slot_count):
            slot = self.slot_for(ordinal)
            for kind, metric in enumerate(slot.metrics()):
                totals[kind].duration += metric.duration
                totals[kind].count += metric.count

        for total in totals:
            total.rate = total.count / total.duration if total.duration > 0.0 else 0.0

        return totals

    def release(self):
        if not self._buffer.closed:
            self._buffer.close()
