"""Delays between retry attempts, in milliseconds.

Strategies receive the error that triggered the retry. Rate-limited
embedding requests (HTTP 429) usually carry a ``Retry-After`` header, which
:class:`ExponentialBackoff` prefers over its own schedule.
"""

import random
from typing import Optional, Protocol, runtime_checkable


def retry_after_ms(error: Optional[Exception]) -> Optional[int]:
    """``Retry-After`` of the HTTP response behind ``error``, in milliseconds.

    Provider errors wrap the transport exception, so the cause is checked
    too. Only the delta-seconds form of the header is understood.
    """
    for candidate in (error, getattr(error, "__cause__", None)):
        response = getattr(candidate, "response", None)
        headers = getattr(response, "headers", None)
        if not headers:
            continue
        value = headers.get("Retry-After")
        if value is None:
            continue
        try:
            seconds = float(value)
        except (TypeError, ValueError):
            return None
        return max(0, int(seconds * 1000))
    return None


@runtime_checkable
class RetryStrategy(Protocol):
    def get_delay(self, attempt: int, error: Optional[Exception] = None) -> int:
        """Sleep time in milliseconds before retrying after attempt ``attempt`` (0-based)."""
        ...


class LinearBackoff(RetryStrategy):
    def __init__(self, base_delay_ms: int = 500):
        self.base_delay_ms = base_delay_ms

    def get_delay(self, attempt: int, error: Optional[Exception] = None) -> int:
        return self.base_delay_ms * (attempt + 1)


class ExponentialBackoff(RetryStrategy):
    """Doubling delays with up to 10% jitter, capped at ``max_delay_ms``.

    A server-provided ``Retry-After`` replaces the computed delay, still
    subject to the cap.
    """

    def __init__(
        self,
        base_delay_ms: int = 200,
        multiplier: float = 2.0,
        max_delay_ms: float = 10000.0,
        honor_retry_after: bool = True,
    ):
        self.base_delay_ms = base_delay_ms
        self.multiplier = multiplier
        self.max_delay_ms = max_delay_ms
        self.honor_retry_after = honor_retry_after

    def get_delay(self, attempt: int, error: Optional[Exception] = None) -> int:
        if self.honor_retry_after:
            hinted = retry_after_ms(error)
            if hinted is not None:
                return int(min(hinted, self.max_delay_ms))

        delay = self.base_delay_ms * (self.multiplier**attempt)
        jitter = random.uniform(0, 0.1 * delay)
        return int(min(delay + jitter, self.max_delay_ms))


class FixedDelay(RetryStrategy):
    def __init__(self, delay_ms: int = 1000):
        self.delay_ms = delay_ms

    def get_delay(self, attempt: int, error: Optional[Exception] = None) -> int:
        return self.delay_ms
