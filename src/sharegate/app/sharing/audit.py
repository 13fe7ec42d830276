"""Access audit log entries and reason codes.

Every download or password-verification attempt, successful or not, leaves
one append-only ``AuditLogEntry``. Entries are never updated, so the log stays
a reliable forensic trail independent of later changes to the share itself.
Entries are deleted only by the retention job and the admin ``delete`` action.

This module provides:
  1. ``AuditReason`` / ``AuditOutcome``: closed enums.
  2. ``AttemptCategory`` and the reason sets each category counts.
  3. ``AuditLogEntry``: structured record with row mapping.
  4. ``record_attempt``: convenience writer used by the gate and verifier.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Protocol

from .model import format_timestamp, parse_timestamp, utcnow


class AuditOutcome(str, Enum):
    SUCCESS = 'success'
    FAILED = 'failed'


class AuditReason(str, Enum):
    RATE_LIMITED = 'rate_limited'
    PASSWORD_RATE_LIMITED = 'password_rate_limited'
    WRONG_PASSWORD = 'wrong_password'
    FILE_NOT_FOUND = 'file_not_found'
    FILE_REVOKED = 'file_revoked'
    LINK_EXPIRED = 'link_expired'
    DOWNLOAD_LIMIT_EXCEEDED = 'download_limit_exceeded'
    CONCURRENT_DOWNLOAD_DETECTED = 'concurrent_download_detected'
    URL_GENERATION_FAILED = 'url_generation_failed'
    DOWNLOAD_INITIATED = 'download_initiated'


class AttemptCategory(str, Enum):
    DOWNLOAD = 'download'
    PASSWORD = 'password'


# Failures counted against each category. Kept disjoint so a flood of password
# failures never throttles downloads from the same IP, and vice versa.
CATEGORY_REASONS: Mapping[AttemptCategory, frozenset[AuditReason]] = MappingProxyType({
    AttemptCategory.DOWNLOAD: frozenset({
        AuditReason.RATE_LIMITED,
        AuditReason.FILE_NOT_FOUND,
        AuditReason.FILE_REVOKED,
        AuditReason.LINK_EXPIRED,
        AuditReason.DOWNLOAD_LIMIT_EXCEEDED,
        AuditReason.CONCURRENT_DOWNLOAD_DETECTED,
        AuditReason.URL_GENERATION_FAILED,
    }),
    AttemptCategory.PASSWORD: frozenset({
        AuditReason.PASSWORD_RATE_LIMITED,
        AuditReason.WRONG_PASSWORD,
    }),
})

RATE_LIMIT_REASONS: Mapping[AttemptCategory, AuditReason] = MappingProxyType({
    AttemptCategory.DOWNLOAD: AuditReason.RATE_LIMITED,
    AttemptCategory.PASSWORD: AuditReason.PASSWORD_RATE_LIMITED,
})

RATE_LIMITED_REASONS = frozenset(RATE_LIMIT_REASONS.values())


@dataclass(frozen=True, slots=True)
class AuditLogEntry:
    """One access or verification attempt.

    ``share_id`` is a reference, not ownership: entries for a share that no
    longer exists are kept until the retention window removes them.
    """

    share_id: str
    outcome: AuditOutcome
    reason: AuditReason
    client_ip: str
    geo_country: str | None = None
    timestamp: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_row(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'file_id': self.share_id,
            'status': self.outcome.value,
            'reason': self.reason.value,
            'ip_address': self.client_ip,
            'geo_country': self.geo_country,
            'created_at': format_timestamp(self.timestamp),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> AuditLogEntry:
        return cls(
            id=str(row['id']),
            share_id=str(row.get('file_id') or ''),
            outcome=AuditOutcome(row['status']),
            reason=AuditReason(row['reason']),
            client_ip=row.get('ip_address') or 'unknown',
            geo_country=row.get('geo_country') or None,
            timestamp=parse_timestamp(row.get('created_at')) or utcnow(),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dict safe for JSON responses and logs."""
        return {
            'id': self.id,
            'file_id': self.share_id,
            'status': self.outcome.value,
            'reason': self.reason.value,
            'ip_address': self.client_ip,
            'geo_country': self.geo_country,
            'timestamp': format_timestamp(self.timestamp),
        }


class AuditWriter(Protocol):
    async def insert(self, entry: AuditLogEntry) -> AuditLogEntry: ...


async def record_attempt(
    writer: AuditWriter,
    *,
    share_id: str,
    reason: AuditReason,
    client_ip: str,
    geo_country: str | None,
    now: datetime | None = None,
) -> AuditLogEntry:
    """Append an audit entry; ``download_initiated`` is the only success."""
    outcome = (
        AuditOutcome.SUCCESS
        if reason is AuditReason.DOWNLOAD_INITIATED
        else AuditOutcome.FAILED
    )
    entry = AuditLogEntry(
        share_id=share_id,
        outcome=outcome,
        reason=reason,
        client_ip=client_ip,
        geo_country=geo_country,
        timestamp=now or utcnow(),
    )
    return await writer.insert(entry)
