from .deadline_budget import DeadlineBudget
from .deadline_guard import DeadlineGuard, GuardedRun
