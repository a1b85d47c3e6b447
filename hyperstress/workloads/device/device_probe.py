import fcntl
import mmap
import os
import select
import stat
from dataclasses import dataclass
from typing import Callable, Iterator

from hyperstress.deadline import DeadlineGuard
from hyperstress.errors import OperationTimeout
from hyperstress.visited import Classification, VisitedCache

from .dispatch_table import DispatchTable


@dataclass(slots=True)
class ProbeResult:
    path: str
    steps: int = 0
    failed_steps: int = 0
    timed_out: bool = False
    classification: Classification | None = None
    open_errno: int | None = None


class DeviceProbe:
    """
    Exercises one special file through a guarded sequence of suspension
    points: open, fstat, seeks, poll, select, fcntl, mmap and any matching
    dispatch handlers. The deadline is checked after every step and the
    file is abandoned on the first exceedance.

    Failures of individual steps are expected on many devices and only
    counted. Non-special files are classified and dropped after ``fstat``.
    """

    def __init__(
        self,
        visited: VisitedCache,
        guard: DeadlineGuard | None = None,
        threshold: float = 0.25,
        dispatch: DispatchTable | None = None,
        page_size: int = mmap.PAGESIZE,
    ) -> None:
        self._visited = visited
        self._guard = guard or DeadlineGuard()
        self.threshold = threshold
        self._dispatch = dispatch or DispatchTable.default()
        self._page_size = page_size

    def probe(self, path: str) -> ProbeResult:
        result = ProbeResult(path=path)
        budget = self._guard.begin(self.threshold)

        try:
            fd = os.open(path, os.O_RDONLY | os.O_NONBLOCK)

        except OSError as err:
            result.open_errno = err.errno
            self._visited.insert(path, Classification.UNREACHABLE)
            return result

        try:
            self._guard.checkpoint(budget)

            mode = os.fstat(fd).st_mode
            result.steps += 1

            if stat.S_ISBLK(mode):
                result.classification = Classification.BLOCK_DEVICE

            elif stat.S_ISCHR(mode):
                result.classification = Classification.CHAR_DEVICE

            else:
                result.classification = Classification.NOT_SPECIAL
                self._visited.insert(path, Classification.NOT_SPECIAL)
                return result

            self._visited.insert(path, result.classification)
            self._guard.checkpoint(budget)

            for step in self._steps(fd, path):
                try:
                    step()

                except (OSError, ValueError):
                    result.failed_steps += 1

                result.steps += 1
                self._guard.checkpoint(budget)

        except OperationTimeout:
            result.timed_out = True

        finally:
            os.close(fd)

        return result

    def _steps(self, fd: int, path: str) -> Iterator[Callable[[], object]]:
        yield lambda: os.lseek(fd, 0, os.SEEK_SET)
        yield lambda: os.lseek(fd, 0, os.SEEK_CUR)
        yield lambda: os.lseek(fd, 0, os.SEEK_END)
        yield lambda: self._poll(fd)
        yield lambda: select.select([fd], [fd], [], 0.01)
        yield lambda: fcntl.fcntl(fd, fcntl.F_GETFD)
        yield lambda: fcntl.fcntl(fd, fcntl.F_GETFL)
        yield lambda: self._map(fd, mmap.MAP_PRIVATE)
        yield lambda: self._map(fd, mmap.MAP_SHARED)

        for handler in self._dispatch.match(path):
            yield lambda handler=handler: handler(fd, path)

    def _poll(self, fd: int):
        poller = select.poll()
        poller.register(fd, select.POLLIN)
        return poller.poll(0)

    def _map(self, fd: int, flags: int):
        mapping = mmap.mmap(fd, self._page_size, flags=flags, prot=mmap.PROT_READ)
        mapping.close()
