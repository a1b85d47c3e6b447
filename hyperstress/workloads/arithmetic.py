import ctypes
import mmap
import random
import struct
import time
from typing import Callable

from hyperstress.errors import ResourceExhaustion, VerificationMismatch
from hyperstress.metrics import MetricView

from .workload import Workload, _always
from .workload_set import WorkloadSet

_WIDTH_TYPES: dict[int, type[ctypes._SimpleCData]] = {
    64: ctypes.c_uint64,
    32: ctypes.c_uint32,
    16: ctypes.c_uint16,
    8: ctypes.c_uint8,
}

_WIDTH_FORMATS = {
    64: "=Q",
    32: "=I",
    16: "=H",
    8: "=B",
}

OPS_PER_ROUND = 64
SHARED_VALUES = 4


class MaskedArithmeticWorkload(Workload):
    """
    Runs a fixed block of store/add/sub/and/xor/or/nand/clear operations on
    fixed-width unsigned integers and self-checks a store/inc/dec/load
    sequence on a private value after every block.

    The operated-on values live in an anonymous shared mapping created when
    the workload is built, so every worker forked afterwards contends on the
    same four values. A mapping released by ``teardown`` is recreated by the
    next ``setup``.
    """

    def __init__(self, width: int, rounds: int = 1000) -> None:
        if width not in _WIDTH_TYPES:
            raise ValueError(f"Unsupported integer width {width}")

        super().__init__()

        self.width = width
        self.rounds = rounds
        self.name = f"uint{width}"
        self.label = f"uint{width} arithmetic ops per sec"

        self._ctype = _WIDTH_TYPES[width]
        self._value = struct.Struct(_WIDTH_FORMATS[width])
        self._mask = (1 << width) - 1
        self._idx = 0
        self._random = random.Random()
        self._shared: mmap.mmap | None = None

        self._map_shared()

    def _map_shared(self):
        try:
            self._shared = mmap.mmap(
                -1,
                SHARED_VALUES * self._value.size,
                flags=mmap.MAP_SHARED | mmap.MAP_ANONYMOUS,
                prot=mmap.PROT_READ | mmap.PROT_WRITE,
            )

        except (OSError, ValueError) as err:
            raise ResourceExhaustion(
                f"Could not mmap shared values for {self.name}",
                cause=err,
            ) from err

    @property
    def shared(self) -> bool:
        return self._shared is not None and not self._shared.closed

    def load(self, idx: int) -> int:
        return self._value.unpack_from(self._shared, idx * self._value.size)[0]

    def store(self, idx: int, value: int):
        self._value.pack_into(self._shared, idx * self._value.size, value & self._mask)

    def setup(self, keep_running: Callable[[], bool] = _always) -> None:
        super().setup(keep_running)

        if not self.shared:
            self._map_shared()

    def _nand(self, value: int, operand: int) -> int:
        return ~(value & operand) & self._mask

    def _exercise(self, idx: int, tmp: int):
        mask = self._mask

        self.store(idx, tmp)
        for operand_add, operand_sub in ((1, 3), (2, 4)):
            self.store(idx, self.load(idx) + operand_add)
            self.store(idx, self.load(idx) - operand_sub)

        for and_mask, xor_mask, or_mask, nand_mask in (
            (~1, ~4, 16, 64),
            (~2, ~8, 32, 128),
        ):
            self.store(idx, self.load(idx) & (and_mask & mask))
            self.store(idx, self.load(idx) ^ (xor_mask & mask))
            self.store(idx, self.load(idx) | or_mask & mask)
            self.store(idx, self._nand(self.load(idx), nand_mask & mask))

        self.store(idx, 0)

    def verify(self, check1: int, check2: int):
        if (check2 - 1) & self._mask != check1:
            raise VerificationMismatch(
                f"{self.name} store/inc/dec/load",
                check1,
                (check2 - 1) & self._mask,
            )

    def run(self, metric: MetricView) -> None:
        for _ in range(self.rounds):
            tmp = self._random.getrandbits(self.width)
            check1 = tmp

            start = time.perf_counter()

            unshared = self._ctype(check1)
            unshared.value = (unshared.value + 2) & self._mask
            unshared.value = (unshared.value - 1) & self._mask
            check2 = unshared.value

            for _ in range(OPS_PER_ROUND // 16):
                self._exercise(self._idx, tmp)

            metric.add(time.perf_counter() - start, float(OPS_PER_ROUND))

            self._idx = (self._idx + 1) & (SHARED_VALUES - 1)

            self.verify(check1, check2)

    def teardown(self) -> None:
        if self.shared:
            self._shared.close()

        self._shared = None


def arithmetic_workload_set(rounds: int = 1000) -> WorkloadSet:
    return WorkloadSet(
        "arithmetic",
        [MaskedArithmeticWorkload(width, rounds=rounds) for width in (64, 32, 16, 8)],
    )
