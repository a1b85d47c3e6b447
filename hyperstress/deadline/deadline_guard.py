"""
Soft wall-clock bound for sequences of blocking operations.

Some resources (character and block special files in particular) can block
indefinitely inside the kernel. There is no safe way to interrupt such a call
from user space, so the guard is cooperative: callers record a budget at the
first suspension point of a unit of work and check it after every subsequent
one, abandoning the unit on the first exceedance. An operation already blocked
inside a single suspension point is never aborted.
"""

import time
from dataclasses import dataclass
from typing import Callable, Iterable

from hyperstress.errors import OperationTimeout

from .deadline_budget import DeadlineBudget


@dataclass(slots=True)
class GuardedRun:
    completed: int = 0
    abandoned: bool = False
    elapsed: float = 0.0


class DeadlineGuard:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock

    def begin(self, threshold: float) -> DeadlineBudget:
        return DeadlineBudget(
            start_time=self._clock(),
            threshold=threshold,
        )

    def elapsed(self, budget: DeadlineBudget) -> float:
        return self._clock() - budget.start_time

    def exceeded(self, budget: DeadlineBudget) -> bool:
        return self.elapsed(budget) > budget.threshold

    def checkpoint(self, budget: DeadlineBudget):
        elapsed = self.elapsed(budget)
        if elapsed > budget.threshold:
            raise OperationTimeout(elapsed, budget.threshold)

    def run_guarded(
        self,
        threshold: float,
        steps: Iterable[Callable[[], object]],
    ) -> GuardedRun:
        budget = self.begin(threshold)
        result = GuardedRun()

        for step in steps:
            step()
            result.completed += 1

            if self.exceeded(budget):
                result.abandoned = True
                break

        result.elapsed = self.elapsed(budget)

        return result
