import os
import random
import re
import stat
import zlib
from typing import Callable, Iterator, List, Tuple

from hyperstress.visited import Classification, VisitedCache

_TRAILING_NUMBER = re.compile(r"(\d+)$")

# group/other read-write bits; directories with none of these are not walked
_SHARED_ACCESS_BITS = stat.S_IRGRP | stat.S_IWGRP | stat.S_IROTH | stat.S_IWOTH

SKIP_CLASSIFICATIONS = frozenset(
    {
        Classification.NOT_SPECIAL,
        Classification.SKIPPED,
        Classification.UNREACHABLE,
    }
)


def is_special_file(entry: os.DirEntry) -> bool:
    mode = entry.stat(follow_symlinks=False).st_mode
    return stat.S_ISCHR(mode) or stat.S_ISBLK(mode)


def _always() -> bool:
    return True


class BoundedTraversal:
    """
    Depth-first walk with an explicit stack of pending directories.

    ``max_depth`` caps how far below the root directories are read and
    ``sibling_limit`` caps how many numbered siblings of one name prefix are
    visited (``ttyS0``..``ttyS2`` for a limit of 3). Paths classified as not
    worth probing are recorded in the ``VisitedCache`` and skipped on later
    walks.
    """

    def __init__(
        self,
        visited: VisitedCache,
        max_depth: int = 20,
        sibling_limit: int = 3,
        accept: Callable[[os.DirEntry], bool] = is_special_file,
        keep_running: Callable[[], bool] = _always,
        skip_hpet: bool | None = None,
    ) -> None:
        self._visited = visited
        self.max_depth = max_depth
        self.sibling_limit = sibling_limit
        self._accept = accept
        self._keep_running = keep_running
        self._mixup = random.getrandbits(32)

        if skip_hpet is None:
            skip_hpet = os.geteuid() == 0

        # hpet hangs some virtualized guests when opened as root
        self._skip_hpet = skip_hpet

    def _mixup_key(self, entry: os.DirEntry) -> int:
        return zlib.crc32(entry.name.encode()) ^ self._mixup

    def over_sibling_limit(self, name: str) -> bool:
        if len(name) < 2:
            return False

        match = _TRAILING_NUMBER.search(name[1:])
        if match is None:
            return False

        return int(match.group(1)) >= self.sibling_limit

    def _skip_name(self, name: str) -> bool:
        return (
            name.startswith(".")
            or (self._skip_hpet and name == "hpet")
            or self.over_sibling_limit(name)
        )

    def walk(self, root: str) -> Iterator[str]:
        pending: List[Tuple[str, int]] = [(root, 0)]

        while pending:
            if not self._keep_running():
                return

            directory, depth = pending.pop()
            if depth > self.max_depth:
                continue

            try:
                with os.scandir(directory) as scanner:
                    entries = sorted(scanner, key=self._mixup_key)

            except OSError:
                self._visited.insert(directory, Classification.UNREACHABLE)
                continue

            subdirectories: List[Tuple[str, int]] = []

            for entry in entries:
                if not self._keep_running():
                    return

                if self._skip_name(entry.name):
                    continue

                path = os.path.join(directory, entry.name)
                if self._visited.lookup(path) in SKIP_CLASSIFICATIONS:
                    continue

                try:
                    is_directory = entry.is_dir(follow_symlinks=False)

                except OSError:
                    self._visited.insert(path, Classification.UNREACHABLE)
                    continue

                if is_directory:
                    if self._walkable(path):
                        subdirectories.append((path, depth + 1))

                    continue

                if "watchdog" in path:
                    self._visited.insert(path, Classification.SKIPPED)
                    continue

                try:
                    accepted = self._accept(entry)

                except OSError:
                    self._visited.insert(path, Classification.UNREACHABLE)
                    continue

                if accepted:
                    yield path

                else:
                    self._visited.insert(path, Classification.NOT_SPECIAL)

            pending.extend(reversed(subdirectories))

    def _walkable(self, path: str) -> bool:
        try:
            mode = os.stat(path).st_mode

        except OSError:
            self._visited.insert(path, Classification.SKIPPED)
            return False

        if mode & _SHARED_ACCESS_BITS == 0:
            self._visited.insert(path, Classification.SKIPPED)
            return False

        return True
