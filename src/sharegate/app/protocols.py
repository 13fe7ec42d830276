"""Store and provider protocol interfaces for dependency injection.

These protocols define the contracts that concrete implementations (InMemory
for local dev and tests, Supabase for non-local) must satisfy. The app
factory accepts any implementation that matches these protocols.
"""

from __future__ import annotations

from datetime import datetime
from typing import Collection, Protocol, runtime_checkable

from .sharing.audit import AuditLogEntry, AuditOutcome, AuditReason
from .sharing.model import HashScheme, ShareRecord


@runtime_checkable
class ShareRecordStore(Protocol):
    """Persisted share metadata with conditional updates."""

    async def create(self, record: ShareRecord) -> ShareRecord: ...
    async def get(self, share_id: str) -> ShareRecord | None: ...
    async def list_recent(self, limit: int) -> list[ShareRecord]: ...
    async def list_expired(self, now: datetime, limit: int) -> list[ShareRecord]: ...

    async def increment_download_count(self, share_id: str, expected_count: int) -> bool:
        """Atomically set ``download_count = expected_count + 1``.

        Applies only while the stored count still equals ``expected_count``.
        Returns False when another request advanced the counter first (or the
        record vanished).
        """
        ...

    async def update_password_hash(
        self, share_id: str, password_hash: str, scheme: HashScheme,
    ) -> None: ...
    async def revoke(self, share_id: str) -> bool: ...
    async def set_expiry(self, share_id: str, expires_at: datetime) -> bool: ...
    async def reset_download_count(self, share_id: str) -> bool: ...
    async def delete(self, share_ids: Collection[str]) -> int: ...


@runtime_checkable
class AuditLogStore(Protocol):
    """Append-only access events with filtered queries."""

    async def insert(self, entry: AuditLogEntry) -> AuditLogEntry: ...

    async def oldest_failures(
        self,
        client_ip: str,
        reasons: Collection[AuditReason],
        since: datetime,
        limit: int,
    ) -> list[AuditLogEntry]:
        """Failed entries for ``client_ip`` with a reason in ``reasons``.

        Only entries at or after ``since`` qualify; results are ordered
        oldest first and capped at ``limit``.
        """
        ...

    async def count(
        self,
        since: datetime,
        *,
        outcome: AuditOutcome | None = None,
        reasons: Collection[AuditReason] | None = None,
    ) -> int: ...
    async def list_recent(self, limit: int) -> list[AuditLogEntry]: ...
    async def delete_for_shares(self, share_ids: Collection[str]) -> int: ...
    async def delete_older_than(self, cutoff: datetime) -> int: ...


@runtime_checkable
class ObjectStorage(Protocol):
    """File object storage (Supabase Storage bucket or in-memory)."""

    async def put(self, path: str, data: bytes, content_type: str = ...) -> None: ...
    async def signed_get(self, path: str, ttl_seconds: int) -> str: ...
    async def remove(self, paths: Collection[str]) -> None: ...


@runtime_checkable
class GeoLocator(Protocol):
    """Best-effort IP → ISO country lookup. Returns None on any failure."""

    async def lookup(self, ip: str) -> str | None: ...
