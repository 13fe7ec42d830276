"""Supabase-backed ShareRecordStore implementation.

Persists share metadata in the ``files`` table via PostgREST.

The download counter is consumed with a single conditional PATCH:

    PATCH /files?id=eq.<id>&download_count=eq.<expected>
    {"download_count": <expected + 1>}

With ``Prefer: return=representation`` PostgREST returns the rows it actually
updated, so an empty list means a concurrent request advanced the counter
first. No row lock is held across the network round trip.
"""

from __future__ import annotations

from datetime import datetime
from typing import Collection

from ..sharing.model import HashScheme, ShareRecord, format_timestamp
from .supabase_client import PostgrestFilter, SupabaseClient

_COLUMNS = (
    "id,user_id,original_name,stored_path,token,expires_at,max_downloads,"
    "download_count,password_hash,hash_version,encryption_enabled,"
    "encryption_iv,is_revoked,created_at"
)


class SupabaseShareRecordStore:
    """ShareRecordStore backed by the ``files`` table."""

    TABLE = "files"

    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    async def create(self, record: ShareRecord) -> ShareRecord:
        rows = await self._client.insert(self.TABLE, record.to_row())
        return ShareRecord.from_row(rows[0])

    async def get(self, share_id: str) -> ShareRecord | None:
        rows = await self._client.select(
            self.TABLE,
            filters={"id": ("eq", share_id)},
            columns=_COLUMNS,
            limit=1,
        )
        return ShareRecord.from_row(rows[0]) if rows else None

    async def list_recent(self, limit: int) -> list[ShareRecord]:
        rows = await self._client.select(
            self.TABLE,
            columns=_COLUMNS,
            order="created_at.desc",
            limit=limit,
        )
        return [ShareRecord.from_row(row) for row in rows]

    async def list_expired(self, now: datetime, limit: int) -> list[ShareRecord]:
        rows = await self._client.select(
            self.TABLE,
            filters=[
                PostgrestFilter("expires_at", "not.is", None),
                PostgrestFilter("expires_at", "lte", format_timestamp(now)),
            ],
            columns=_COLUMNS,
            order="expires_at.asc",
            limit=limit,
        )
        return [ShareRecord.from_row(row) for row in rows]

    async def increment_download_count(self, share_id: str, expected_count: int) -> bool:
        rows = await self._client.update(
            self.TABLE,
            filters=[
                PostgrestFilter("id", "eq", share_id),
                PostgrestFilter("download_count", "eq", expected_count),
            ],
            data={"download_count": expected_count + 1},
        )
        return len(rows) == 1

    async def update_password_hash(
        self, share_id: str, password_hash: str, scheme: HashScheme,
    ) -> None:
        await self._client.update(
            self.TABLE,
            filters={"id": ("eq", share_id)},
            data={"password_hash": password_hash, "hash_version": scheme.value},
        )

    async def revoke(self, share_id: str) -> bool:
        rows = await self._client.update(
            self.TABLE,
            filters={"id": ("eq", share_id)},
            data={"is_revoked": True},
        )
        return len(rows) > 0

    async def set_expiry(self, share_id: str, expires_at: datetime) -> bool:
        rows = await self._client.update(
            self.TABLE,
            filters={"id": ("eq", share_id)},
            data={"expires_at": format_timestamp(expires_at)},
        )
        return len(rows) > 0

    async def reset_download_count(self, share_id: str) -> bool:
        rows = await self._client.update(
            self.TABLE,
            filters={"id": ("eq", share_id)},
            data={"download_count": 0},
        )
        return len(rows) > 0

    async def delete(self, share_ids: Collection[str]) -> int:
        ids = list(share_ids)
        if not ids:
            return 0
        rows = await self._client.delete(
            self.TABLE,
            filters={"id": ("in", ids)},
        )
        return len(rows)
