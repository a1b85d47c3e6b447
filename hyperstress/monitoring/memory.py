import psutil

from hyperstress.logging.hyperstress_logging_models import MemoryInfo

_MB = 1024**2


class MemorySnapshot:
    def __init__(
        self,
        total: int,
        available: int,
        used: int,
        swap_used: int,
    ) -> None:
        self.total = total
        self.available = available
        self.used = used
        self.swap_used = swap_used

    @classmethod
    def capture(cls):
        virtual_memory = psutil.virtual_memory()
        swap_memory = psutil.swap_memory()

        return cls(
            virtual_memory.total,
            virtual_memory.available,
            virtual_memory.used,
            swap_memory.used,
        )

    def to_entry(self, message: str) -> MemoryInfo:
        return MemoryInfo(
            message=message,
            total_mb=round(self.total / _MB, 2),
            available_mb=round(self.available / _MB, 2),
            used_mb=round(self.used / _MB, 2),
            swap_used_mb=round(self.swap_used / _MB, 2),
        )
