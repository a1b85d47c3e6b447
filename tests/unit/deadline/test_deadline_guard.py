"""
Tests for DeadlineGuard.

A fake clock drives the guard so elapsed time is exact.
"""

import pytest

from hyperstress.deadline import DeadlineGuard
from hyperstress.errors import OperationTimeout


class FakeClock:
    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class TestDeadlineGuard:
    """Tests for budgets and checkpoints."""

    def test_not_exceeded_within_threshold(self):
        """Elapsed time up to the threshold is not an exceedance."""
        clock = FakeClock()
        guard = DeadlineGuard(clock)

        budget = guard.begin(0.25)
        clock.advance(0.25)

        assert guard.elapsed(budget) == pytest.approx(0.25)
        assert not guard.exceeded(budget)
        guard.checkpoint(budget)

    def test_checkpoint_raises_once_exceeded(self):
        """A checkpoint past the threshold raises OperationTimeout."""
        clock = FakeClock()
        guard = DeadlineGuard(clock)

        budget = guard.begin(0.25)
        clock.advance(0.3)

        assert guard.exceeded(budget)
        with pytest.raises(OperationTimeout) as exc_info:
            guard.checkpoint(budget)

        assert exc_info.value.threshold == 0.25
        assert exc_info.value.elapsed == pytest.approx(0.3)

    def test_steps_after_exceedance_never_run(self):
        """0.1s steps against a 0.25s threshold abandon after the third step."""
        clock = FakeClock()
        guard = DeadlineGuard(clock)
        executed = []

        def step(idx: int):
            def run():
                executed.append(idx)
                clock.advance(0.1)

            return run

        result = guard.run_guarded(0.25, [step(idx) for idx in range(10)])

        assert executed == [0, 1, 2]
        assert result.completed == 3
        assert result.abandoned
        assert result.elapsed == pytest.approx(0.3)

    def test_all_steps_run_when_fast(self):
        """A sequence that stays inside its budget runs to completion."""
        clock = FakeClock()
        guard = DeadlineGuard(clock)

        result = guard.run_guarded(1.0, [lambda: clock.advance(0.01) for _ in range(5)])

        assert result.completed == 5
        assert not result.abandoned
