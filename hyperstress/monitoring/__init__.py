from .memory import MemorySnapshot
