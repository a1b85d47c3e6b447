"""
Tests for MaskedArithmeticWorkload.
"""

import os

import pytest

from hyperstress.errors import VerificationMismatch
from hyperstress.metrics import SharedMetricsRegion
from hyperstress.workloads import MaskedArithmeticWorkload, arithmetic_workload_set
from hyperstress.workloads.arithmetic import OPS_PER_ROUND


@pytest.fixture
def region():
    region = SharedMetricsRegion.allocate(slot_count=1, kind_count=4)
    yield region
    region.release()


class TestMaskedArithmeticWorkload:
    """Tests for counting and self-checks."""

    def test_counts_ops_per_round(self, region: SharedMetricsRegion):
        """Each round adds a fixed number of operations and its elapsed time."""
        workload = MaskedArithmeticWorkload(32, rounds=10)
        metric = region.slot_for(0)[0]

        workload.run(metric)

        assert metric.count == 10 * OPS_PER_ROUND
        assert metric.duration > 0.0

    def test_unknown_width_rejected(self):
        """Only 8, 16, 32 and 64 bit widths exist."""
        with pytest.raises(ValueError):
            MaskedArithmeticWorkload(12)

    def test_verify_accepts_wrapped_values(self):
        """Increment then decrement wraps within the width."""
        workload = MaskedArithmeticWorkload(8)

        workload.verify(0xFF, 0x00)
        workload.verify(0x10, 0x11)

    def test_verify_detects_mismatch(self):
        """A value that did not survive inc/dec raises VerificationMismatch."""
        workload = MaskedArithmeticWorkload(16)

        with pytest.raises(VerificationMismatch) as exc_info:
            workload.verify(0x1234, 0x1234)

        assert exc_info.value.expected == 0x1234
        assert exc_info.value.actual == 0x1233

    def test_workload_set_covers_every_width(self, region: SharedMetricsRegion):
        """The default set has one kind per width, labelled distinctly."""
        workload_set = arithmetic_workload_set(rounds=2)

        assert len(workload_set) == 4
        assert len(set(workload_set.labels)) == 4

        slot = region.slot_for(0)
        for kind, workload in enumerate(workload_set):
            workload.run(slot[kind])

        assert all(metric.count == 2 * OPS_PER_ROUND for metric in slot.metrics())


class TestMaskedArithmeticSharedValues:
    """Tests for the values contended across worker processes."""

    def test_values_are_shared_with_forked_workers(self):
        """A store in a forked child is visible to the process that built the workload."""
        workload = MaskedArithmeticWorkload(32, rounds=1)

        try:
            pid = os.fork()
            if pid == 0:
                try:
                    workload.store(2, 0xDEADBEEF)

                finally:
                    os._exit(0)

            _, status = os.waitpid(pid, 0)

            assert os.WIFEXITED(status) and os.WEXITSTATUS(status) == 0
            assert workload.load(2) == 0xDEADBEEF

        finally:
            workload.teardown()

    def test_stores_are_masked_to_width(self):
        """Values wrap at the workload's width."""
        workload = MaskedArithmeticWorkload(8, rounds=1)

        try:
            workload.store(0, 0x1FF)
            assert workload.load(0) == 0xFF

        finally:
            workload.teardown()

    def test_teardown_releases_and_setup_remaps(self, region: SharedMetricsRegion):
        """A torn down workload maps fresh shared values on its next setup."""
        workload = MaskedArithmeticWorkload(16, rounds=2)

        workload.teardown()
        assert not workload.shared

        workload.setup()
        try:
            assert workload.shared
            workload.run(region.slot_for(0)[0])

        finally:
            workload.teardown()

        assert region.slot_for(0)[0].count == 2 * OPS_PER_ROUND
