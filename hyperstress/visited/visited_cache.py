import os
import threading
import weakref
import zlib
from dataclasses import dataclass
from typing import List

from .classification import Classification

_live_caches: "weakref.WeakSet[VisitedCache]" = weakref.WeakSet()


def _reset_locks_after_fork():
    for cache in list(_live_caches):
        cache._lock = threading.Lock()


os.register_at_fork(after_in_child=_reset_locks_after_fork)


@dataclass(slots=True, frozen=True)
class VisitedEntry:
    identifier: str
    classification: Classification


class VisitedCache:
    """
    Process-local hash set of resource identifiers that have already been
    classified, so repeated traversals do not probe them again.

    The table has a fixed bucket count with chaining. One lock guards every
    lookup and insert for the threads of the owning process. A forked child
    gets a copy of the table and a fresh lock of its own; nothing is shared
    with the parent after the fork.
    """

    def __init__(self, bucket_count: int = 251) -> None:
        if bucket_count < 1:
            raise ValueError("VisitedCache requires at least one bucket")

        self.bucket_count = bucket_count
        self._buckets: List[List[VisitedEntry]] = [[] for _ in range(bucket_count)]
        self._size = 0
        self._lock = threading.Lock()

        _live_caches.add(self)

    def _bucket(self, identifier: str) -> List[VisitedEntry]:
        return self._buckets[zlib.crc32(identifier.encode()) % self.bucket_count]

    def lookup(self, identifier: str) -> Classification | None:
        with self._lock:
            for entry in self._bucket(identifier):
                if entry.identifier == identifier:
                    return entry.classification

        return None

    def insert(self, identifier: str, classification: Classification):
        entry = VisitedEntry(identifier, classification)

        with self._lock:
            bucket = self._bucket(identifier)
            for idx, existing in enumerate(bucket):
                if existing.identifier == identifier:
                    bucket[idx] = entry
                    return

            bucket.append(entry)
            self._size += 1

    def __contains__(self, identifier: str):
        return self.lookup(identifier) is not None

    def __len__(self):
        with self._lock:
            return self._size

    def chain_length(self, identifier: str) -> int:
        with self._lock:
            return len(self._bucket(identifier))
