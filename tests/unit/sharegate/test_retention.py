"""Tests for the retention sweep and abuse alerting."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from sharegate.app.db.errors import SupabaseError
from sharegate.app.inmemory import InMemoryAuditLogStore
from sharegate.app.operations.retention import AlertType, RetentionConfig, RetentionJob
from sharegate.app.sharing.audit import AuditLogEntry, AuditOutcome, AuditReason

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _entry(share_id: str, reason: AuditReason, age: timedelta) -> AuditLogEntry:
    outcome = (
        AuditOutcome.SUCCESS if reason is AuditReason.DOWNLOAD_INITIATED else AuditOutcome.FAILED
    )
    return AuditLogEntry(
        share_id=share_id,
        outcome=outcome,
        reason=reason,
        client_ip='203.0.113.9',
        timestamp=NOW - age,
    )


class FailingCountAuditStore(InMemoryAuditLogStore):
    async def count(self, since, *, outcome=None, reasons=None):
        raise SupabaseError(status_code=503, message='unavailable')


class TestPurge:
    @pytest.mark.asyncio
    async def test_expired_shares_are_purged_with_objects_and_logs(
        self, share_store, audit_store, object_storage, make_share,
    ):
        expired = await make_share(expires_at=NOW - timedelta(days=1))
        live = await make_share(expires_at=NOW + timedelta(days=1))
        unbounded = await make_share(expires_at=None)
        await audit_store.insert(_entry(expired.id, AuditReason.LINK_EXPIRED, timedelta(hours=2)))
        await audit_store.insert(_entry(live.id, AuditReason.DOWNLOAD_INITIATED, timedelta(hours=2)))

        summary = await RetentionJob(share_store, audit_store, object_storage).run(NOW)

        assert summary.expired_shares_deleted == 1
        assert await share_store.get(expired.id) is None
        assert expired.stored_path not in object_storage.objects
        assert audit_store.find(share_id=expired.id) == []
        assert await share_store.get(live.id) is not None
        assert await share_store.get(unbounded.id) is not None

    @pytest.mark.asyncio
    async def test_old_audit_entries_are_deleted(self, share_store, audit_store, object_storage):
        await audit_store.insert(_entry('s', AuditReason.FILE_NOT_FOUND, timedelta(days=91)))
        await audit_store.insert(_entry('s', AuditReason.FILE_NOT_FOUND, timedelta(days=89)))

        summary = await RetentionJob(share_store, audit_store, object_storage).run(NOW)

        assert summary.audit_entries_deleted == 1
        assert len(audit_store.entries) == 1
        assert summary.retention_cutoff == NOW - timedelta(days=90)

    @pytest.mark.asyncio
    async def test_second_run_is_a_no_op(self, share_store, audit_store, object_storage, make_share):
        await make_share(expires_at=NOW - timedelta(days=1))
        job = RetentionJob(share_store, audit_store, object_storage)

        await job.run(NOW)
        again = await job.run(NOW)

        assert again.expired_shares_deleted == 0
        assert again.audit_entries_deleted == 0

    @pytest.mark.asyncio
    async def test_batch_size_bounds_one_run(self, share_store, audit_store, object_storage, make_share):
        for _ in range(3):
            await make_share(expires_at=NOW - timedelta(days=1))
        job = RetentionJob(
            share_store, audit_store, object_storage, RetentionConfig(expired_batch_size=2),
        )

        assert (await job.run(NOW)).expired_shares_deleted == 2
        assert (await job.run(NOW)).expired_shares_deleted == 1


class TestAlerts:
    @pytest.mark.asyncio
    async def test_thresholds_reached_raise_alerts(self, share_store, audit_store, object_storage):
        for _ in range(3):
            await audit_store.insert(_entry('s', AuditReason.RATE_LIMITED, timedelta(minutes=5)))
        await audit_store.insert(_entry('s', AuditReason.WRONG_PASSWORD, timedelta(minutes=5)))
        # Outside the trailing hour.
        await audit_store.insert(_entry('s', AuditReason.RATE_LIMITED, timedelta(hours=2)))
        config = RetentionConfig(rate_limit_spike_threshold=3, failure_spike_threshold=5)

        summary = await RetentionJob(share_store, audit_store, object_storage, config).run(NOW)

        assert [a.type for a in summary.alerts] == [AlertType.RATE_LIMIT_SPIKE]
        assert summary.alerts[0].value == 3

        payload = summary.to_dict()
        assert payload['alerts'][0]['type'] == 'rate_limit_spike'
        assert payload['warnings'] == []

    @pytest.mark.asyncio
    async def test_quiet_hour_has_no_alerts(self, share_store, audit_store, object_storage):
        await audit_store.insert(_entry('s', AuditReason.DOWNLOAD_INITIATED, timedelta(minutes=1)))

        summary = await RetentionJob(share_store, audit_store, object_storage).run(NOW)

        assert summary.alerts == ()

    @pytest.mark.asyncio
    async def test_count_failures_become_warnings(self, share_store, object_storage):
        audit_store = FailingCountAuditStore()

        summary = await RetentionJob(share_store, audit_store, object_storage).run(NOW)

        assert summary.alerts == ()
        assert summary.warnings == (
            'rate_limited_count_unavailable',
            'failed_count_unavailable',
        )
