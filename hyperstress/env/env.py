import os
from typing import Callable, Dict, Union

import psutil
from pydantic import BaseModel, StrictBool, StrictFloat, StrictInt, StrictStr

from .time_parser import TimeParser

PrimaryType = Union[str, int, float, bytes, bool]


def _default_workers() -> int:
    return psutil.cpu_count(logical=False) or os.cpu_count() or 1


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Env(BaseModel):
    HYPERSTRESS_WORKERS: StrictInt = _default_workers()
    HYPERSTRESS_OPS: StrictInt = 0
    HYPERSTRESS_TIMEOUT: StrictStr | StrictInt | StrictFloat = "60s"
    HYPERSTRESS_RUN_IN_PARENT: StrictBool = True
    HYPERSTRESS_MAX_RESTARTS: StrictInt = 16
    HYPERSTRESS_FORK_RETRIES: StrictInt = 100
    HYPERSTRESS_FORK_RETRY_BASE_DELAY: StrictFloat | StrictInt = 0.001
    HYPERSTRESS_FORK_RETRY_MAX_DELAY: StrictFloat | StrictInt = 0.1
    HYPERSTRESS_REAP_POLL_INTERVAL: StrictStr | StrictInt | StrictFloat = "0.01s"
    HYPERSTRESS_KILL_GRACE: StrictStr | StrictInt | StrictFloat = "0.1s"
    HYPERSTRESS_SHUTDOWN_GRACE: StrictStr | StrictInt | StrictFloat = "5s"
    HYPERSTRESS_OOM_ADJUST: StrictBool = True
    HYPERSTRESS_DEADLINE_THRESHOLD: StrictFloat | StrictInt = 0.25
    HYPERSTRESS_VISITED_BUCKETS: StrictInt = 251
    HYPERSTRESS_PROBE_THREADS: StrictInt = 4
    HYPERSTRESS_TRAVERSAL_MAX_DEPTH: StrictInt = 20
    HYPERSTRESS_TRAVERSAL_SIBLING_LIMIT: StrictInt = 3
    HYPERSTRESS_LOG_LEVEL: StrictStr = "info"
    HYPERSTRESS_LOGS_DIRECTORY: StrictStr = os.getcwd()

    @classmethod
    def types_map(cls) -> Dict[str, Callable[[str], PrimaryType]]:
        return {
            "HYPERSTRESS_WORKERS": int,
            "HYPERSTRESS_OPS": int,
            "HYPERSTRESS_TIMEOUT": str,
            "HYPERSTRESS_RUN_IN_PARENT": _parse_bool,
            "HYPERSTRESS_MAX_RESTARTS": int,
            "HYPERSTRESS_FORK_RETRIES": int,
            "HYPERSTRESS_FORK_RETRY_BASE_DELAY": float,
            "HYPERSTRESS_FORK_RETRY_MAX_DELAY": float,
            "HYPERSTRESS_REAP_POLL_INTERVAL": str,
            "HYPERSTRESS_KILL_GRACE": str,
            "HYPERSTRESS_SHUTDOWN_GRACE": str,
            "HYPERSTRESS_OOM_ADJUST": _parse_bool,
            "HYPERSTRESS_DEADLINE_THRESHOLD": float,
            "HYPERSTRESS_VISITED_BUCKETS": int,
            "HYPERSTRESS_PROBE_THREADS": int,
            "HYPERSTRESS_TRAVERSAL_MAX_DEPTH": int,
            "HYPERSTRESS_TRAVERSAL_SIBLING_LIMIT": int,
            "HYPERSTRESS_LOG_LEVEL": str,
            "HYPERSTRESS_LOGS_DIRECTORY": str,
        }

    def seconds(self, name: str) -> float:
        return TimeParser().parse(getattr(self, name))
