"""In-memory store implementations for local development and tests.

These are used when ENVIRONMENT=local. They satisfy the protocol interfaces
but keep everything in dicts (no persistence across restarts).

Every mutating method completes without awaiting anything, so on a single
event loop each call is atomic; ``increment_download_count`` relies on this
to behave as a compare-and-swap.
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime
from typing import Collection

from .db.errors import SupabaseNotFoundError
from .sharing.audit import AuditLogEntry, AuditOutcome, AuditReason
from .sharing.model import HashScheme, ShareRecord


class InMemoryShareRecordStore:
    def __init__(self) -> None:
        self._records: dict[str, ShareRecord] = {}

    async def create(self, record: ShareRecord) -> ShareRecord:
        if any(r.token == record.token for r in self._records.values()):
            raise ValueError(f'Duplicate share token {record.token!r}')
        share_id = record.id or str(uuid.uuid4())
        stored = replace(record, id=share_id)
        self._records[share_id] = stored
        return replace(stored)

    async def get(self, share_id: str) -> ShareRecord | None:
        record = self._records.get(share_id)
        # Hand out copies so callers never mutate stored state.
        return replace(record) if record else None

    async def list_recent(self, limit: int) -> list[ShareRecord]:
        ordered = sorted(
            self._records.values(), key=lambda r: r.created_at, reverse=True,
        )
        return [replace(r) for r in ordered[:limit]]

    async def list_expired(self, now: datetime, limit: int) -> list[ShareRecord]:
        expired = [r for r in self._records.values() if r.is_time_expired(now)]
        expired.sort(key=lambda r: r.expires_at)
        return [replace(r) for r in expired[:limit]]

    async def increment_download_count(self, share_id: str, expected_count: int) -> bool:
        record = self._records.get(share_id)
        if record is None or record.download_count != expected_count:
            return False
        record.download_count = expected_count + 1
        return True

    async def update_password_hash(
        self, share_id: str, password_hash: str, scheme: HashScheme,
    ) -> None:
        record = self._records.get(share_id)
        if record is None:
            return
        record.password_hash = password_hash
        record.hash_scheme = scheme

    async def revoke(self, share_id: str) -> bool:
        record = self._records.get(share_id)
        if record is None:
            return False
        record.revoked = True
        return True

    async def set_expiry(self, share_id: str, expires_at: datetime) -> bool:
        record = self._records.get(share_id)
        if record is None:
            return False
        record.expires_at = expires_at
        return True

    async def reset_download_count(self, share_id: str) -> bool:
        record = self._records.get(share_id)
        if record is None:
            return False
        record.download_count = 0
        return True

    async def delete(self, share_ids: Collection[str]) -> int:
        removed = 0
        for share_id in share_ids:
            if self._records.pop(share_id, None) is not None:
                removed += 1
        return removed


class InMemoryAuditLogStore:
    def __init__(self) -> None:
        self.entries: list[AuditLogEntry] = []

    async def insert(self, entry: AuditLogEntry) -> AuditLogEntry:
        self.entries.append(entry)
        return entry

    async def oldest_failures(
        self,
        client_ip: str,
        reasons: Collection[AuditReason],
        since: datetime,
        limit: int,
    ) -> list[AuditLogEntry]:
        wanted = set(reasons)
        matches = [
            e for e in self.entries
            if e.outcome is AuditOutcome.FAILED
            and e.client_ip == client_ip
            and e.reason in wanted
            and e.timestamp >= since
        ]
        matches.sort(key=lambda e: e.timestamp)
        return matches[:limit]

    async def count(
        self,
        since: datetime,
        *,
        outcome: AuditOutcome | None = None,
        reasons: Collection[AuditReason] | None = None,
    ) -> int:
        wanted = set(reasons) if reasons is not None else None
        return sum(
            1 for e in self.entries
            if e.timestamp >= since
            and (outcome is None or e.outcome is outcome)
            and (wanted is None or e.reason in wanted)
        )

    async def list_recent(self, limit: int) -> list[AuditLogEntry]:
        ordered = sorted(self.entries, key=lambda e: e.timestamp, reverse=True)
        return ordered[:limit]

    async def delete_for_shares(self, share_ids: Collection[str]) -> int:
        ids = set(share_ids)
        before = len(self.entries)
        self.entries = [e for e in self.entries if e.share_id not in ids]
        return before - len(self.entries)

    async def delete_older_than(self, cutoff: datetime) -> int:
        before = len(self.entries)
        self.entries = [e for e in self.entries if e.timestamp >= cutoff]
        return before - len(self.entries)

    def find(
        self,
        reason: AuditReason | None = None,
        share_id: str | None = None,
    ) -> list[AuditLogEntry]:
        """Filter entries by reason and/or share (test helper)."""
        result = self.entries
        if reason is not None:
            result = [e for e in result if e.reason is reason]
        if share_id is not None:
            result = [e for e in result if e.share_id == share_id]
        return result


class InMemoryObjectStorage:
    """Dict-backed bucket. Signed URLs are opaque ``memory://`` references."""

    def __init__(self, bucket: str = 'files') -> None:
        self.bucket = bucket
        self.objects: dict[str, bytes] = {}
        self.fail_signing = False

    async def put(
        self, path: str, data: bytes, content_type: str = 'application/octet-stream',
    ) -> None:
        self.objects[path] = bytes(data)

    async def signed_get(self, path: str, ttl_seconds: int) -> str:
        if self.fail_signing or path not in self.objects:
            raise SupabaseNotFoundError(status_code=404, message='Object not found')
        return f'memory://{self.bucket}/{path}?ttl={ttl_seconds}&sig={uuid.uuid4().hex}'

    async def remove(self, paths: Collection[str]) -> None:
        for path in paths:
            self.objects.pop(path, None)
