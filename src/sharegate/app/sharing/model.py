"""Share record domain model and lifecycle status evaluation.

A share is one uploaded file plus its access policy (expiry, download limit,
password, client-side encryption). The lifecycle status is derived on every
read by ``evaluate_share_status`` and never persisted, so concurrent admin
mutations and download consumption cannot leave a stale cached status behind.

This module provides:
  1. ``ShareRecord``: domain object matching the ``files`` table.
  2. ``ShareStatus`` / ``HashScheme``: closed enums.
  3. ``evaluate_share_status``: the single pure status function used by
     both the server (authoritative) and the client library (advisory).
  4. ``generate_share_token``: unguessable public token for share URLs.
  5. Row mapping helpers for PostgREST payloads.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

# ── Constants ─────────────────────────────────────────────────────────

TOKEN_BYTES = 32  # 256-bit tokens.


# ── Enums ─────────────────────────────────────────────────────────────


class ShareStatus(str, Enum):
    ACTIVE = 'active'
    EXPIRED = 'expired'
    REVOKED = 'revoked'


class HashScheme(str, Enum):
    NONE = 'none'
    LEGACY_DIGEST = 'legacy-digest'
    BCRYPT = 'bcrypt'
    UNKNOWN = 'unknown'


# Values historically written to ``hash_version`` for unsalted SHA-256 hashes.
_LEGACY_HASH_VERSIONS = frozenset({'sha256', 'legacy-digest', 'legacy'})


# ── Time helpers ──────────────────────────────────────────────────────


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a PostgREST timestamp (ISO-8601, optional ``Z``) to aware UTC."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime | None) -> str | None:
    return value.astimezone(timezone.utc).isoformat() if value else None


# ── Token operations ──────────────────────────────────────────────────


def generate_share_token() -> str:
    """Generate a cryptographically random URL-safe share token."""
    return secrets.token_urlsafe(TOKEN_BYTES)


# ── Domain model ──────────────────────────────────────────────────────


@dataclass
class ShareRecord:
    """Share metadata matching the ``files`` table.

    Attributes:
        id: Store-assigned identity (immutable).
        owner_id: External identity of the uploader.
        original_name: File name shown to recipients.
        stored_path: Object key inside the storage bucket.
        token: Public unguessable identifier used in the share URL.
        expires_at: Optional absolute expiry.
        max_downloads: Optional positive download cap.
        download_count: Consumed downloads; only grows while active.
        password_hash: Optional credential hash.
        hash_scheme: Scheme of ``password_hash``.
        encryption_enabled: File content was encrypted client-side.
        encryption_iv: Base64 96-bit IV, present iff encryption_enabled.
        revoked: Set once by an admin, never cleared.
        created_at: Creation timestamp.
    """

    id: str
    owner_id: str
    original_name: str
    stored_path: str
    token: str
    expires_at: datetime | None = None
    max_downloads: int | None = None
    download_count: int = 0
    password_hash: str | None = None
    hash_scheme: HashScheme = HashScheme.NONE
    encryption_enabled: bool = False
    encryption_iv: str | None = None
    revoked: bool = False
    created_at: datetime = field(default_factory=utcnow)

    @property
    def is_password_protected(self) -> bool:
        return bool(self.password_hash)

    @property
    def limit_reached(self) -> bool:
        return (
            self.max_downloads is not None
            and self.download_count >= self.max_downloads
        )

    def is_time_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    # ── Row mapping ───────────────────────────────────────────────

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ShareRecord:
        """Build a record from a ``files`` row as returned by PostgREST."""
        password_hash = row.get('password_hash') or None
        return cls(
            id=str(row['id']),
            owner_id=str(row.get('user_id') or ''),
            original_name=row.get('original_name') or '',
            stored_path=row.get('stored_path') or '',
            token=row.get('token') or '',
            expires_at=parse_timestamp(row.get('expires_at')),
            max_downloads=row.get('max_downloads') or None,
            download_count=int(row.get('download_count') or 0),
            password_hash=password_hash,
            hash_scheme=resolve_hash_scheme(password_hash, row.get('hash_version')),
            encryption_enabled=bool(row.get('encryption_enabled')),
            encryption_iv=row.get('encryption_iv') or None,
            revoked=bool(row.get('is_revoked')),
            created_at=parse_timestamp(row.get('created_at')) or utcnow(),
        )

    def to_row(self) -> dict[str, Any]:
        """Serialize to a ``files`` row (without the store-assigned id)."""
        return {
            'user_id': self.owner_id,
            'original_name': self.original_name,
            'stored_path': self.stored_path,
            'token': self.token,
            'expires_at': format_timestamp(self.expires_at),
            'max_downloads': self.max_downloads,
            'download_count': self.download_count,
            'password_hash': self.password_hash,
            'hash_version': (
                None if self.hash_scheme is HashScheme.NONE else self.hash_scheme.value
            ),
            'encryption_enabled': self.encryption_enabled,
            'encryption_iv': self.encryption_iv,
            'is_revoked': self.revoked,
            'created_at': format_timestamp(self.created_at),
        }

    def to_public_dict(self) -> dict[str, Any]:
        """Admin-facing view; never includes the password hash."""
        return {
            'id': self.id,
            'user_id': self.owner_id,
            'original_name': self.original_name,
            'token': self.token,
            'expires_at': format_timestamp(self.expires_at),
            'max_downloads': self.max_downloads,
            'download_count': self.download_count,
            'is_revoked': self.revoked,
            'encryption_enabled': self.encryption_enabled,
            'password_protected': self.is_password_protected,
            'created_at': format_timestamp(self.created_at),
            'stored_path': self.stored_path,
        }


def resolve_hash_scheme(password_hash: str | None, hash_version: str | None) -> HashScheme:
    """Map the stored ``hash_version`` column onto a HashScheme.

    Rows written before the bcrypt migration carry ``sha256`` or no version at
    all; both are treated as the legacy digest. Any other version maps to
    ``UNKNOWN``, which never verifies, so one odd row cannot break listings.
    """
    if not password_hash:
        return HashScheme.NONE
    version = (hash_version or '').strip().lower()
    if version == HashScheme.BCRYPT.value:
        return HashScheme.BCRYPT
    if not version or version in _LEGACY_HASH_VERSIONS:
        return HashScheme.LEGACY_DIGEST
    return HashScheme.UNKNOWN


# ── Status evaluation ────────────────────────────────────────────────


def evaluate_share_status(record: ShareRecord, now: datetime) -> ShareStatus:
    """Compute the lifecycle status of a share at ``now``.

    Revocation wins over everything; time expiry and an exhausted download
    limit both read as ``expired``.
    """
    if record.revoked:
        return ShareStatus.REVOKED
    if record.is_time_expired(now) or record.limit_reached:
        return ShareStatus.EXPIRED
    return ShareStatus.ACTIVE
