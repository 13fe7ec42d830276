"""Download gate: the single authority on whether a share may be downloaded.

Each attempt runs, in order: rate limit, record lookup, status checks,
optimistic consumption of one download, signed URL minting. Every exit path
appends exactly one audit entry before the result is returned, and audit
write failures propagate so no download succeeds without its audit row.

The counter is consumed before the URL is minted and is not rolled back when
minting fails; a failed mint therefore burns one download.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from ...observability.metrics import GATE_DECISIONS_TOTAL
from ..db.errors import SupabaseError
from .audit import RATE_LIMIT_REASONS, AttemptCategory, AuditReason, record_attempt
from .model import ShareStatus, evaluate_share_status, utcnow

if TYPE_CHECKING:
    from ..protocols import AuditLogStore, ObjectStorage, ShareRecordStore
    from .rate_limit import FailedAttemptRateLimiter

logger = logging.getLogger(__name__)

DEFAULT_SIGNED_URL_TTL_SECONDS = 60

# Response status and client-facing message per failure reason.
_FAILURES: dict[AuditReason, tuple[int, str]] = {
    AuditReason.RATE_LIMITED: (429, 'Too many failed attempts. Try again later.'),
    AuditReason.FILE_NOT_FOUND: (404, 'File not found'),
    AuditReason.FILE_REVOKED: (403, 'File has been revoked'),
    AuditReason.LINK_EXPIRED: (403, 'Share link has expired'),
    AuditReason.DOWNLOAD_LIMIT_EXCEEDED: (403, 'Download limit exceeded'),
    AuditReason.CONCURRENT_DOWNLOAD_DETECTED: (
        409, 'Concurrent download detected; please retry',
    ),
    AuditReason.URL_GENERATION_FAILED: (500, 'Failed to generate download URL'),
}


@dataclass(frozen=True, slots=True)
class GateResult:
    """Outcome of one gated download attempt."""

    status_code: int
    reason: AuditReason
    body: dict[str, Any] = field(default_factory=dict)
    retry_after_seconds: int | None = None

    @property
    def success(self) -> bool:
        return self.status_code == 200


class DownloadGate:
    """Validates and consumes download attempts against a share.

    Args:
        share_store: Share records, including the conditional counter update.
        audit_store: Receives one entry per attempt.
        object_storage: Mints short-lived signed URLs.
        rate_limiter: Failed-attempt limiter (``download`` category).
        signed_url_ttl_seconds: Lifetime of minted URLs.
    """

    def __init__(
        self,
        share_store: ShareRecordStore,
        audit_store: AuditLogStore,
        object_storage: ObjectStorage,
        rate_limiter: FailedAttemptRateLimiter,
        *,
        signed_url_ttl_seconds: int = DEFAULT_SIGNED_URL_TTL_SECONDS,
    ) -> None:
        self._shares = share_store
        self._audit = audit_store
        self._storage = object_storage
        self._rate_limiter = rate_limiter
        self._signed_url_ttl = signed_url_ttl_seconds

    async def validate_and_download(
        self,
        share_id: str,
        client_ip: str,
        geo_country: str | None = None,
    ) -> GateResult:
        now = utcnow()

        async def finish(
            reason: AuditReason,
            body: dict[str, Any] | None = None,
            retry_after: int | None = None,
        ) -> GateResult:
            await record_attempt(
                self._audit,
                share_id=share_id,
                reason=reason,
                client_ip=client_ip,
                geo_country=geo_country,
                now=now,
            )
            GATE_DECISIONS_TOTAL.labels(reason=reason.value).inc()
            if reason is AuditReason.DOWNLOAD_INITIATED:
                return GateResult(200, reason, body or {})
            status_code, message = _FAILURES[reason]
            payload: dict[str, Any] = {'success': False, 'error': message}
            if retry_after is not None:
                payload['retryAfterSeconds'] = retry_after
            return GateResult(status_code, reason, payload, retry_after)

        decision = await self._rate_limiter.check(client_ip, AttemptCategory.DOWNLOAD, now)
        if decision.limited:
            return await finish(
                RATE_LIMIT_REASONS[AttemptCategory.DOWNLOAD],
                retry_after=decision.retry_after_seconds,
            )

        record = await self._shares.get(share_id)
        if record is None:
            return await finish(AuditReason.FILE_NOT_FOUND)

        status = evaluate_share_status(record, now)
        if status is ShareStatus.REVOKED:
            return await finish(AuditReason.FILE_REVOKED)
        if record.is_time_expired(now):
            return await finish(AuditReason.LINK_EXPIRED)
        if record.limit_reached:
            return await finish(AuditReason.DOWNLOAD_LIMIT_EXCEEDED)

        consumed = await self._shares.increment_download_count(
            record.id, record.download_count,
        )
        if not consumed:
            logger.info('Concurrent download detected for share %s', record.id)
            return await finish(AuditReason.CONCURRENT_DOWNLOAD_DETECTED)

        try:
            signed_url = await self._storage.signed_get(
                record.stored_path, self._signed_url_ttl,
            )
        except (SupabaseError, httpx.HTTPError) as exc:
            logger.error(
                'Signed URL generation failed for share %s: %r', record.id, exc,
            )
            return await finish(AuditReason.URL_GENERATION_FAILED)

        return await finish(
            AuditReason.DOWNLOAD_INITIATED,
            {'success': True, 'signedUrl': signed_url},
        )
