"""Bounded retry for download-gate conflicts.

A 409 from the gate means another request consumed the same download slot
first; retrying re-reads the counter and usually succeeds. A 429 is a
throttle decision and is surfaced immediately, never retried.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConflictError(Exception):
    """The gate reported a concurrent download (HTTP 409)."""


class ConflictRetryExhausted(Exception):
    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Download still conflicting after {attempts} attempts; please retry")


class RateLimitedError(Exception):
    def __init__(self, retry_after_seconds: int, message: str = "") -> None:
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message or f"Too many attempts; retry in {retry_after_seconds}s")


@dataclass(frozen=True)
class ConflictRetryPolicy:
    """Exponential backoff with additive jitter.

    Attributes:
        max_retries: Retries after the first attempt.
        base_delay: Seconds before the first retry, doubled per retry.
        max_jitter: Upper bound of the uniform jitter in seconds.
    """

    max_retries: int = 3
    base_delay: float = 0.25
    max_jitter: float = 0.1

    def delay(self, attempt: int, rand: Callable[[float, float], float] = random.uniform) -> float:
        return self.base_delay * 2 ** attempt + rand(0.0, self.max_jitter)


async def retry_on_conflict(
    operation: Callable[[], Awaitable[T]],
    policy: ConflictRetryPolicy | None = None,
    *,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    rand: Callable[[float, float], float] = random.uniform,
) -> T:
    """Run ``operation``, retrying while it raises ConflictError.

    Any other exception, RateLimitedError included, propagates at once.

    Raises:
        ConflictRetryExhausted: Still conflicting after ``max_retries``.
    """
    policy = policy or ConflictRetryPolicy()
    for attempt in range(policy.max_retries + 1):
        try:
            return await operation()
        except ConflictError:
            if attempt == policy.max_retries:
                break
            delay = policy.delay(attempt, rand)
            logger.debug("Gate conflict on attempt %d; retrying in %.3fs", attempt + 1, delay)
            await sleep(delay)
    raise ConflictRetryExhausted(policy.max_retries + 1)
