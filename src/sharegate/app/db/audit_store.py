"""Supabase-backed AuditLogStore implementation.

Writes access events to the ``access_logs`` table via PostgREST. Unlike a
fire-and-forget audit emitter, insert errors propagate: a gated download must
never succeed without its audit row, and the rate limiter reads these rows
back as its only counter.
"""

from __future__ import annotations

from datetime import datetime
from typing import Collection

from ..sharing.audit import AuditLogEntry, AuditOutcome, AuditReason
from ..sharing.model import format_timestamp
from .supabase_client import PostgrestFilter, SupabaseClient

_COLUMNS = "id,file_id,status,reason,ip_address,geo_country,created_at"


class SupabaseAuditLogStore:
    """AuditLogStore backed by the ``access_logs`` table."""

    TABLE = "access_logs"

    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    async def insert(self, entry: AuditLogEntry) -> AuditLogEntry:
        rows = await self._client.insert(self.TABLE, entry.to_row())
        return AuditLogEntry.from_row(rows[0]) if rows else entry

    async def oldest_failures(
        self,
        client_ip: str,
        reasons: Collection[AuditReason],
        since: datetime,
        limit: int,
    ) -> list[AuditLogEntry]:
        rows = await self._client.select(
            self.TABLE,
            filters=[
                PostgrestFilter("status", "eq", AuditOutcome.FAILED.value),
                PostgrestFilter("ip_address", "eq", client_ip),
                PostgrestFilter("reason", "in", sorted(r.value for r in reasons)),
                PostgrestFilter("created_at", "gte", format_timestamp(since)),
            ],
            columns=_COLUMNS,
            order="created_at.asc",
            limit=limit,
        )
        return [AuditLogEntry.from_row(row) for row in rows]

    async def count(
        self,
        since: datetime,
        *,
        outcome: AuditOutcome | None = None,
        reasons: Collection[AuditReason] | None = None,
    ) -> int:
        filters = [PostgrestFilter("created_at", "gte", format_timestamp(since))]
        if outcome is not None:
            filters.append(PostgrestFilter("status", "eq", outcome.value))
        if reasons is not None:
            filters.append(
                PostgrestFilter("reason", "in", sorted(r.value for r in reasons)),
            )
        return await self._client.count(self.TABLE, filters)

    async def list_recent(self, limit: int) -> list[AuditLogEntry]:
        rows = await self._client.select(
            self.TABLE,
            columns=_COLUMNS,
            order="created_at.desc",
            limit=limit,
        )
        return [AuditLogEntry.from_row(row) for row in rows]

    async def delete_for_shares(self, share_ids: Collection[str]) -> int:
        ids = list(share_ids)
        if not ids:
            return 0
        rows = await self._client.delete(self.TABLE, filters={"file_id": ("in", ids)})
        return len(rows)

    async def delete_older_than(self, cutoff: datetime) -> int:
        rows = await self._client.delete(
            self.TABLE,
            filters={"created_at": ("lt", format_timestamp(cutoff))},
        )
        return len(rows)
