"""Sliding-window failed-attempt limiter backed by the audit log.

There is no separate counter store: the limiter counts ``failed`` audit
entries for the client IP whose reason belongs to the attempt category,
within a trailing window ending now. A rejected attempt is itself logged by
the caller with the category's rate-limit reason, so throttled clients keep
feeding the window they are throttled by.

Reads race with concurrent inserts; a slight undercount near the threshold
under heavy concurrency is accepted.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from .audit import CATEGORY_REASONS, AttemptCategory
from .model import utcnow

if TYPE_CHECKING:
    from ..protocols import AuditLogStore

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 10 * 60
DEFAULT_MAX_FAILED_ATTEMPTS = 5
MIN_RETRY_AFTER_SECONDS = 1


@dataclass(frozen=True)
class RateLimitConfig:
    """Configuration for the failed-attempt window."""
    max_failed_attempts: int = DEFAULT_MAX_FAILED_ATTEMPTS
    window_seconds: int = DEFAULT_WINDOW_SECONDS


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    limited: bool
    retry_after_seconds: int | None = None
    failures_in_window: int = 0


def compute_retry_after_seconds(
    oldest_failure_at: datetime,
    now: datetime,
    window_seconds: int,
) -> int:
    """Seconds until the oldest qualifying failure leaves the window.

    Floored at one second so a client is never told to retry immediately.
    """
    window_ms = window_seconds * 1000
    elapsed_ms = (now - oldest_failure_at).total_seconds() * 1000
    remaining_ms = max(MIN_RETRY_AFTER_SECONDS * 1000, window_ms - elapsed_ms)
    return math.ceil(remaining_ms / 1000)


class FailedAttemptRateLimiter:
    """Per-IP, per-category throttle over the audit log.

    Args:
        audit_store: Source of failed-attempt entries.
        config: Window length and failure threshold.
    """

    def __init__(
        self,
        audit_store: AuditLogStore,
        config: RateLimitConfig | None = None,
    ) -> None:
        self._audit_store = audit_store
        self.config = config or RateLimitConfig()

    async def check(
        self,
        client_ip: str,
        category: AttemptCategory,
        now: datetime | None = None,
    ) -> RateLimitDecision:
        """Decide whether the next attempt from ``client_ip`` may proceed.

        The attempt is rejected once ``max_failed_attempts`` qualifying
        failures already sit in the window; the attempt that produced the
        last of them was itself allowed.
        """
        now = now or utcnow()
        since = now - timedelta(seconds=self.config.window_seconds)
        failures = await self._audit_store.oldest_failures(
            client_ip,
            CATEGORY_REASONS[category],
            since,
            self.config.max_failed_attempts,
        )

        if len(failures) < self.config.max_failed_attempts:
            return RateLimitDecision(limited=False, failures_in_window=len(failures))

        retry_after = compute_retry_after_seconds(
            failures[0].timestamp, now, self.config.window_seconds,
        )
        logger.info(
            'Rate limit hit ip=%s category=%s retry_after=%ss',
            client_ip, category.value, retry_after,
        )
        return RateLimitDecision(
            limited=True,
            retry_after_seconds=retry_after,
            failures_in_window=len(failures),
        )
