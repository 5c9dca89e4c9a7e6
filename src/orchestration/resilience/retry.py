"""Bounded retry with exponential backoff and jitter.

delay(attempt) = min(max_delay, base_delay * multiplier ** attempt * (1 + U[0, jitter)))

``attempt`` is zero-based and counts the retries already taken, so the first
retry waits roughly ``base_delay``. Jitter spreads concurrent orders apart
so they do not hammer a recovering vendor in lockstep. It is capped at
``multiplier - 1`` so the schedule never shrinks from one retry to the next.
"""

import asyncio
import random
from dataclasses import dataclass

from orchestration.resilience.faults import VendorFault


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0
    jitter: float = 0.1

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must not be negative")
        if self.multiplier < 1:
            raise ValueError("multiplier must be at least 1")
        if not 0 <= self.jitter <= self.multiplier - 1:
            raise ValueError("jitter must be between 0 and multiplier - 1")

    def delay(self, attempt: int, rng: random.Random | None = None) -> float:
        """Seconds to wait before retry number ``attempt + 1``."""
        raw = self.base_delay * (self.multiplier**attempt)
        if self.jitter:
            raw *= 1 + (rng or random).uniform(0, self.jitter)
        return min(raw, self.max_delay)

    def schedule(self, rng: random.Random | None = None) -> list[float]:
        """Every backoff delay a call could go through, in order."""
        return [self.delay(attempt, rng) for attempt in range(self.max_attempts - 1)]


def is_retryable(error: BaseException) -> bool:
    """Timeouts and transient vendor faults are retried; business rejections are not."""
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return True
    if isinstance(error, VendorFault):
        return error.retryable
    # Unclassified errors from a client are treated as transport trouble
    return True
