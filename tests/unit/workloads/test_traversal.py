"""
Tests for BoundedTraversal over a temporary directory tree.

Regular files are accepted in place of device nodes so the walk can be
checked without /dev.
"""

import os

import pytest

from hyperstress.visited import Classification, VisitedCache
from hyperstress.workloads.device import BoundedTraversal


def accept_all(entry: os.DirEntry) -> bool:
    return True


def make_tree(root, depth: int):
    directory = root
    for level in range(depth):
        directory = directory / f"level{'x' * level}"
        directory.mkdir()
        (directory / "node").write_text("")

    return directory


@pytest.fixture
def visited() -> VisitedCache:
    return VisitedCache()


class TestBoundedTraversal:
    """Tests for depth, sibling and name limits."""

    def test_depth_limit(self, tmp_path, visited: VisitedCache):
        """Directories deeper than max_depth are not read."""
        make_tree(tmp_path, 6)
        traversal = BoundedTraversal(visited, max_depth=3, accept=accept_all, skip_hpet=False)

        found = list(traversal.walk(str(tmp_path)))
        depths = sorted(
            os.path.relpath(path, tmp_path).count(os.sep) for path in found
        )

        assert depths == [1, 2, 3]

    def test_sibling_limit(self, tmp_path, visited: VisitedCache):
        """Only numbered siblings below the limit are visited."""
        for idx in range(6):
            (tmp_path / f"ttyS{idx}").write_text("")

        (tmp_path / "7").write_text("")

        traversal = BoundedTraversal(visited, sibling_limit=3, accept=accept_all, skip_hpet=False)
        names = sorted(os.path.basename(path) for path in traversal.walk(str(tmp_path)))

        assert names == ["7", "ttyS0", "ttyS1", "ttyS2"]

    def test_skipped_names(self, tmp_path, visited: VisitedCache):
        """Dot names, hpet when asked and watchdog paths are never yielded."""
        for name in (".hidden", "hpet", "watchdog", "null"):
            (tmp_path / name).write_text("")

        traversal = BoundedTraversal(visited, accept=accept_all, skip_hpet=True)
        names = [os.path.basename(path) for path in traversal.walk(str(tmp_path))]

        assert names == ["null"]
        assert visited.lookup(str(tmp_path / "watchdog")) == Classification.SKIPPED

    def test_rejected_files_are_cached(self, tmp_path, visited: VisitedCache):
        """Files the predicate rejects are cached and skipped on the next walk."""
        (tmp_path / "plain").write_text("")
        calls = []

        def reject(entry: os.DirEntry) -> bool:
            calls.append(entry.name)
            return False

        traversal = BoundedTraversal(visited, accept=reject, skip_hpet=False)

        assert list(traversal.walk(str(tmp_path))) == []
        assert list(traversal.walk(str(tmp_path))) == []
        assert calls == ["plain"]
        assert visited.lookup(str(tmp_path / "plain")) == Classification.NOT_SPECIAL

    def test_private_directories_are_skipped(self, tmp_path, visited: VisitedCache):
        """Directories without group or other access bits are not walked."""
        private = tmp_path / "private"
        private.mkdir()
        (private / "node").write_text("")
        os.chmod(private, 0o700)

        traversal = BoundedTraversal(visited, accept=accept_all, skip_hpet=False)

        assert list(traversal.walk(str(tmp_path))) == []
        assert visited.lookup(str(private)) == Classification.SKIPPED

    def test_unreadable_root_is_unreachable(self, tmp_path, visited: VisitedCache):
        """A root that cannot be scanned is cached as UNREACHABLE."""
        missing = str(tmp_path / "missing")
        traversal = BoundedTraversal(visited, accept=accept_all, skip_hpet=False)

        assert list(traversal.walk(missing)) == []
        assert visited.lookup(missing) == Classification.UNREACHABLE

    def test_cancellation_stops_walk(self, tmp_path, visited: VisitedCache):
        """A cleared continue flag ends the walk."""
        for idx in range(3):
            (tmp_path / f"node{idx}").write_text("")

        traversal = BoundedTraversal(
            visited,
            accept=accept_all,
            keep_running=lambda: False,
            skip_hpet=False,
        )

        assert list(traversal.walk(str(tmp_path))) == []
