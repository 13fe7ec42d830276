"""Retention sweep and abuse alerting for shares and access logs.

One run:
  1. Purges up to ``expired_batch_size`` time-expired shares (stored object,
     then their audit entries, then the record).
  2. Deletes audit entries older than the retention window.
  3. Counts rate-limited and failed attempts over the trailing hour.
  4. Raises a ThresholdAlert for each count at or above its threshold.

Usage::

    job = RetentionJob(share_store, audit_store, object_storage)
    summary = await job.run()
    # summary.alerts lists threshold breaches, summary.warnings any
    # counts that could not be computed

Every step is idempotent, so overlapping runs only repeat deletions that
already happened.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any

import httpx

from ...observability.metrics import MAINTENANCE_ALERTS_TOTAL
from ..db.errors import SupabaseError
from ..sharing.audit import RATE_LIMITED_REASONS, AuditOutcome
from ..sharing.model import format_timestamp, utcnow

if TYPE_CHECKING:
    from ..protocols import AuditLogStore, ObjectStorage, ShareRecordStore

logger = logging.getLogger(__name__)

ALERT_WINDOW = timedelta(hours=1)


class AlertType(str, Enum):
    RATE_LIMIT_SPIKE = 'rate_limit_spike'
    FAILURE_SPIKE = 'failure_spike'


@dataclass(frozen=True)
class RetentionConfig:
    retention_days: int = 90
    rate_limit_spike_threshold: int = 50
    failure_spike_threshold: int = 100
    expired_batch_size: int = 500


@dataclass(frozen=True, slots=True)
class ThresholdAlert:
    type: AlertType
    value: int
    threshold: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            'type': self.type.value,
            'value': self.value,
            'threshold': self.threshold,
            'message': self.message,
        }


@dataclass(frozen=True, slots=True)
class MaintenanceSummary:
    """Result of one retention run.

    Attributes:
        expired_shares_deleted: Share records purged for time expiry.
        audit_entries_deleted: Audit entries removed past the retention window.
        retention_cutoff: Entries older than this were removed.
        alerts: Threshold breaches over the trailing hour.
        warnings: Counts that could not be computed (treated as zero).
    """

    expired_shares_deleted: int
    audit_entries_deleted: int
    retention_cutoff: datetime
    alerts: tuple[ThresholdAlert, ...] = ()
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            'expiredFilesDeleted': self.expired_shares_deleted,
            'auditEntriesDeleted': self.audit_entries_deleted,
            'retentionCutoffIso': format_timestamp(self.retention_cutoff),
            'alerts': [alert.to_dict() for alert in self.alerts],
            'warnings': list(self.warnings),
        }


class RetentionJob:
    def __init__(
        self,
        share_store: ShareRecordStore,
        audit_store: AuditLogStore,
        object_storage: ObjectStorage,
        config: RetentionConfig | None = None,
    ) -> None:
        self._shares = share_store
        self._audit = audit_store
        self._storage = object_storage
        self.config = config or RetentionConfig()

    async def run(self, now: datetime | None = None) -> MaintenanceSummary:
        now = now or utcnow()
        warnings: list[str] = []

        purged = await self._purge_expired(now)

        cutoff = now - timedelta(days=self.config.retention_days)
        aged_out = await self._audit.delete_older_than(cutoff)

        since = now - ALERT_WINDOW
        rate_limited = await self._safe_count(
            'rate_limited_count_unavailable', warnings,
            since, reasons=RATE_LIMITED_REASONS,
        )
        failed = await self._safe_count(
            'failed_count_unavailable', warnings,
            since, outcome=AuditOutcome.FAILED,
        )

        alerts = []
        if rate_limited >= self.config.rate_limit_spike_threshold:
            alerts.append(ThresholdAlert(
                type=AlertType.RATE_LIMIT_SPIKE,
                value=rate_limited,
                threshold=self.config.rate_limit_spike_threshold,
                message='Rate-limited attempts exceeded threshold in last hour',
            ))
        if failed >= self.config.failure_spike_threshold:
            alerts.append(ThresholdAlert(
                type=AlertType.FAILURE_SPIKE,
                value=failed,
                threshold=self.config.failure_spike_threshold,
                message='Failed attempts exceeded threshold in last hour',
            ))
        for alert in alerts:
            MAINTENANCE_ALERTS_TOTAL.labels(type=alert.type.value).inc()
            logger.warning(
                'Maintenance alert %s: %s (value=%d threshold=%d)',
                alert.type.value, alert.message, alert.value, alert.threshold,
            )

        logger.info(
            'Retention run purged %d expired shares and %d audit entries',
            purged, aged_out,
        )
        return MaintenanceSummary(
            expired_shares_deleted=purged,
            audit_entries_deleted=aged_out,
            retention_cutoff=cutoff,
            alerts=tuple(alerts),
            warnings=tuple(warnings),
        )

    async def _purge_expired(self, now: datetime) -> int:
        expired = await self._shares.list_expired(now, self.config.expired_batch_size)
        if not expired:
            return 0
        ids = [share.id for share in expired]
        paths = [share.stored_path for share in expired if share.stored_path]
        if paths:
            await self._storage.remove(paths)
        await self._audit.delete_for_shares(ids)
        await self._shares.delete(ids)
        return len(ids)

    async def _safe_count(
        self, warning: str, warnings: list[str], since: datetime, **filters: Any,
    ) -> int:
        try:
            return await self._audit.count(since, **filters)
        except (SupabaseError, httpx.HTTPError) as exc:
            logger.warning('Audit count failed (%s): %r', warning, exc)
            warnings.append(warning)
            return 0
