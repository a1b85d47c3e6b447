from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class DeadlineBudget:
    start_time: float
    threshold: float
