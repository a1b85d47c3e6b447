"""
Bounded retry for transient fork failures.

EAGAIN and ENOMEM at fork time usually clear once other processes exit or
memory is reclaimed, so the caller re-enters the fork after a short jittered
backoff. Retrying stops when the run is cancelled or the attempt bound is hit.
"""

import os
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from hyperstress.errors import TransientForkFailure


class JitterStrategy(Enum):
    FULL = "full"
    EQUAL = "equal"
    NONE = "none"


@dataclass(slots=True)
class ForkRetryConfig:
    max_attempts: int = 100
    base_delay: float = 0.001
    max_delay: float = 0.1
    jitter: JitterStrategy = JitterStrategy.FULL


def _os_fork() -> int:
    return os.fork()


def _always() -> bool:
    return True


class ForkRetry:
    def __init__(
        self,
        config: ForkRetryConfig | None = None,
        fork: Callable[[], int] = _os_fork,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config or ForkRetryConfig()
        self._fork = fork
        self._sleep = sleep
        self.transient_failures = 0

    def calculate_delay(self, attempt: int) -> float:
        temp = min(self._config.max_delay, self._config.base_delay * (2**attempt))

        if self._config.jitter == JitterStrategy.FULL:
            return random.uniform(0, temp)

        elif self._config.jitter == JitterStrategy.EQUAL:
            return temp / 2 + random.uniform(0, temp / 2)

        return temp

    def fork(self, keep_running: Callable[[], bool] = _always) -> int | None:
        """
        Returns the child pid in the parent, 0 in the child, or None when
        the run was cancelled while retrying. Non-transient errors propagate
        as ``OSError``.
        """
        attempt = 0

        while True:
            try:
                return self._fork()

            except OSError as err:
                if not TransientForkFailure.is_transient(err):
                    raise

                self.transient_failures += 1

                if not keep_running():
                    return None

                if attempt + 1 >= self._config.max_attempts:
                    raise TransientForkFailure(err) from err

                self._sleep(self.calculate_delay(attempt))
                attempt += 1
