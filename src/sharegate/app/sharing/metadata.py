"""Share record creation for authenticated owners.

The file bytes are uploaded to object storage by the client beforehand; this
service only persists the access policy. Passwords are hashed with bcrypt
here, so plaintext never reaches the store.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from passlib.context import CryptContext

from ..errors import InvalidShareMetadata
from .credentials import default_pwd_context, hash_password
from .model import HashScheme, ShareRecord, generate_share_token, utcnow

if TYPE_CHECKING:
    from ..protocols import ShareRecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShareDraft:
    """Owner-supplied fields for a new share."""

    original_name: str
    stored_path: str
    token: str | None = None
    expires_at: datetime | None = None
    max_downloads: int | None = None
    password: str | None = None
    encryption_enabled: bool = False
    encryption_iv: str | None = None


def validate_draft(draft: ShareDraft) -> None:
    """Raise InvalidShareMetadata when ``draft`` cannot become a record."""
    if not draft.original_name or not draft.stored_path:
        raise InvalidShareMetadata('Missing required fields')
    if draft.max_downloads is not None and draft.max_downloads <= 0:
        raise InvalidShareMetadata('maxDownloads must be positive')
    if draft.encryption_enabled and not draft.encryption_iv:
        raise InvalidShareMetadata('encryptionIv is required when encryption is enabled')
    if not draft.encryption_enabled and draft.encryption_iv:
        raise InvalidShareMetadata('encryptionIv is only allowed when encryption is enabled')


class ShareMetadataService:
    def __init__(
        self,
        share_store: ShareRecordStore,
        pwd_context: CryptContext = default_pwd_context,
    ) -> None:
        self._shares = share_store
        self._pwd_context = pwd_context

    async def create(self, owner_id: str, draft: ShareDraft) -> ShareRecord:
        validate_draft(draft)

        password = draft.password if draft.password and draft.password.strip() else None
        password_hash = None
        if password is not None:
            password_hash = await asyncio.to_thread(hash_password, password, self._pwd_context)

        record = ShareRecord(
            id='',
            owner_id=owner_id,
            original_name=draft.original_name,
            stored_path=draft.stored_path,
            token=draft.token or generate_share_token(),
            expires_at=draft.expires_at,
            max_downloads=draft.max_downloads,
            download_count=0,
            password_hash=password_hash,
            hash_scheme=HashScheme.BCRYPT if password_hash else HashScheme.NONE,
            encryption_enabled=draft.encryption_enabled,
            encryption_iv=draft.encryption_iv if draft.encryption_enabled else None,
            revoked=False,
            created_at=utcnow(),
        )
        created = await self._shares.create(record)
        logger.info(
            'Share %s created by %s (password=%s, encrypted=%s)',
            created.id, owner_id, password_hash is not None, created.encryption_enabled,
        )
        return created
