from .stress import (
    HyperstressError,
    OperationTimeout,
    ResourceExhaustion,
    TransientForkFailure,
    Unsupported,
    VerificationMismatch,
)
