from .classification import Classification
from .visited_cache import VisitedCache, VisitedEntry
