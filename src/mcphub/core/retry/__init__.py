from .strategy import (
    ExponentialBackoff,
    FixedDelay,
    LinearBackoff,
    RetryStrategy,
    retry_after_ms,
)
from .wrapper import (
    FunctionTarget,
    Retryable,
    RetryWrapper,
    create_retry_wrapper,
    retry_call,
)

__all__ = [
    "Retryable",
    "RetryWrapper",
    "RetryStrategy",
    "FunctionTarget",
    "LinearBackoff",
    "ExponentialBackoff",
    "FixedDelay",
    "create_retry_wrapper",
    "retry_call",
    "retry_after_ms",
]
