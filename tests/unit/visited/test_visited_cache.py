"""
Tests for VisitedCache.

Tests cover:
- Lookup and insert semantics
- Chaining with a single bucket
- Concurrent inserts from threads
- Fresh lock and private copy after fork
"""

import os
import threading

from hyperstress.visited import Classification, VisitedCache


class TestVisitedCacheBasics:
    """Tests for lookup and insert."""

    def test_lookup_missing(self):
        """Unknown identifiers are not present."""
        cache = VisitedCache()

        assert cache.lookup("/dev/null") is None
        assert "/dev/null" not in cache
        assert len(cache) == 0

    def test_insert_is_idempotent(self):
        """Inserting the same entry twice leaves one entry."""
        cache = VisitedCache()

        cache.insert("/dev/tty0", Classification.CHAR_DEVICE)
        cache.insert("/dev/tty0", Classification.CHAR_DEVICE)

        assert len(cache) == 1
        assert cache.lookup("/dev/tty0") == Classification.CHAR_DEVICE

    def test_last_write_wins(self):
        """Reinserting with a new classification replaces the old one."""
        cache = VisitedCache()

        cache.insert("/dev/sda", Classification.BLOCK_DEVICE)
        cache.insert("/dev/sda", Classification.SKIPPED)

        assert len(cache) == 1
        assert cache.lookup("/dev/sda") == Classification.SKIPPED

    def test_single_bucket_chains(self):
        """With one bucket every entry lands in the same chain."""
        cache = VisitedCache(bucket_count=1)
        paths = [f"/dev/loop{idx}" for idx in range(20)]

        for path in paths:
            cache.insert(path, Classification.BLOCK_DEVICE)

        assert len(cache) == 20
        assert cache.chain_length(paths[0]) == 20
        assert all(cache.lookup(path) == Classification.BLOCK_DEVICE for path in paths)


class TestVisitedCacheConcurrency:
    """Tests for threads and forked children."""

    def test_concurrent_inserts(self):
        """Threads inserting overlapping paths never lose or duplicate entries."""
        cache = VisitedCache(bucket_count=7)
        paths = [f"/dev/input/event{idx}" for idx in range(200)]
        start = threading.Barrier(8)

        def insert_all():
            start.wait()
            for path in paths:
                cache.insert(path, Classification.CHAR_DEVICE)
                assert path in cache

        threads = [threading.Thread(target=insert_all) for _ in range(8)]
        for thread in threads:
            thread.start()

        for thread in threads:
            thread.join()

        assert len(cache) == len(paths)

    def test_fork_while_locked_gets_fresh_lock(self):
        """A child forked while the lock is held can still use its copy."""
        cache = VisitedCache()
        cache.insert("/dev/zero", Classification.CHAR_DEVICE)

        cache._lock.acquire()
        try:
            pid = os.fork()
            if pid == 0:
                ok = False
                try:
                    cache.insert("/dev/full", Classification.CHAR_DEVICE)
                    ok = len(cache) == 2 and "/dev/zero" in cache

                finally:
                    os._exit(0 if ok else 1)

        finally:
            cache._lock.release()

        _, status = os.waitpid(pid, 0)

        assert os.WIFEXITED(status) and os.WEXITSTATUS(status) == 0
        assert "/dev/full" not in cache
