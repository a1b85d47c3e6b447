"""
Exception taxonomy for stress runs.

Run-level conditions (no resource, unsupported host) are raised before or
while workers are provisioned and surface as a skip. Worker-level faults are
observed by the supervisor through wait statuses and are modelled as
``WorkerOutcome`` values rather than exceptions.
"""

import errno


class HyperstressError(Exception):
    pass


class ResourceExhaustion(HyperstressError):
    """
    Raised when a run cannot obtain a resource it needs to start at all,
    such as the shared metrics mapping or a single forked worker.

    Never retried. The supervisor converts this into ``ExitStatus.NO_RESOURCE``.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class TransientForkFailure(HyperstressError):
    """
    Raised by the fork helper when ``fork()`` fails with EAGAIN or ENOMEM.

    The caller re-enters the fork attempt until it succeeds, the retry bound
    is reached or the run is cancelled.
    """

    TRANSIENT_ERRNOS = frozenset({errno.EAGAIN, errno.ENOMEM})

    def __init__(self, error: OSError) -> None:
        super().__init__(f"Transient fork failure - {error.strerror} (errno={error.errno})")
        self.errno = error.errno

    @classmethod
    def is_transient(cls, error: OSError) -> bool:
        return error.errno in cls.TRANSIENT_ERRNOS


class OperationTimeout(HyperstressError):
    """Raised at a deadline checkpoint once the budget's threshold is crossed."""

    def __init__(self, elapsed: float, threshold: float) -> None:
        super().__init__(
            f"Guarded operation exceeded deadline - {elapsed:.3f}s elapsed, threshold {threshold:.3f}s"
        )
        self.elapsed = elapsed
        self.threshold = threshold


class VerificationMismatch(HyperstressError):
    """
    Raised by a workload when it detects corrupted state mid-operation.

    This indicates the stressed primitive itself is broken and must abort the
    workload loop with a failure status.
    """

    def __init__(self, workload: str, expected: int, actual: int) -> None:
        super().__init__(
            f"{workload} verification failed, got 0x{actual:x}, expecting 0x{expected:x}"
        )
        self.workload = workload
        self.expected = expected
        self.actual = actual


class Unsupported(HyperstressError):
    """Raised by a support probe when the stressor cannot run on this host."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"{name} stressor will be skipped, {reason}")
        self.name = name
        self.reason = reason
