import os
from typing import Callable, Iterable, List, Tuple

DeviceHandler = Callable[[int, str], None]


def null_handler(fd: int, path: str) -> None:
    pass


def random_handler(fd: int, path: str) -> None:
    os.read(fd, 8)


class DispatchTable:
    """
    Ordered (prefix, handler) pairs selecting the device-specific
    exercisers for a path. Built once; every matching handler runs, in
    registration order.
    """

    def __init__(self, entries: Iterable[Tuple[str, DeviceHandler]] = ()) -> None:
        self._entries: List[Tuple[str, DeviceHandler]] = list(entries)

    def register(self, prefix: str, handler: DeviceHandler):
        self._entries.append((prefix, handler))

    def match(self, path: str) -> List[DeviceHandler]:
        return [handler for prefix, handler in self._entries if path.startswith(prefix)]

    def __len__(self):
        return len(self._entries)

    @classmethod
    def default(cls):
        return cls(
            [
                ("/dev/null", null_handler),
                ("/dev/random", random_handler),
                ("/dev/urandom", random_handler),
            ]
        )
