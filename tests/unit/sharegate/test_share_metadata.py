"""Tests for owner-side share record creation."""

from __future__ import annotations

from datetime import timedelta

import pytest

from sharegate.app.errors import InvalidShareMetadata
from sharegate.app.sharing.metadata import ShareDraft, ShareMetadataService, validate_draft
from sharegate.app.sharing.model import HashScheme, ShareStatus, evaluate_share_status, utcnow


@pytest.fixture
def service(share_store, fast_pwd_context):
    return ShareMetadataService(share_store, fast_pwd_context)


class TestValidateDraft:
    def test_requires_name_and_path(self):
        with pytest.raises(InvalidShareMetadata):
            validate_draft(ShareDraft(original_name='', stored_path='u/x'))
        with pytest.raises(InvalidShareMetadata):
            validate_draft(ShareDraft(original_name='x', stored_path=''))

    @pytest.mark.parametrize('limit', [0, -3])
    def test_rejects_non_positive_limit(self, limit):
        with pytest.raises(InvalidShareMetadata):
            validate_draft(ShareDraft('x', 'u/x', max_downloads=limit))

    def test_encryption_requires_iv(self):
        with pytest.raises(InvalidShareMetadata):
            validate_draft(ShareDraft('x', 'u/x', encryption_enabled=True))

    def test_iv_without_encryption_rejected(self):
        with pytest.raises(InvalidShareMetadata):
            validate_draft(ShareDraft('x', 'u/x', encryption_iv='AAAAAAAAAAAAAAAA'))


class TestCreate:
    @pytest.mark.asyncio
    async def test_new_share_is_active_with_zero_downloads(self, service):
        expires = utcnow() + timedelta(days=2)

        record = await service.create('owner-7', ShareDraft(
            original_name='notes.txt',
            stored_path='owner-7/tok-notes.txt',
            token='tok',
            expires_at=expires,
            max_downloads=2,
        ))

        assert record.id
        assert record.owner_id == 'owner-7'
        assert record.download_count == 0
        assert record.revoked is False
        assert record.hash_scheme is HashScheme.NONE
        assert evaluate_share_status(record, utcnow()) is ShareStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_password_is_stored_as_bcrypt(self, service, share_store, fast_pwd_context):
        record = await service.create('o', ShareDraft('a', 'o/a', password='open sesame'))

        stored = await share_store.get(record.id)
        assert stored.hash_scheme is HashScheme.BCRYPT
        assert stored.password_hash != 'open sesame'
        assert fast_pwd_context.verify('open sesame', stored.password_hash)

    @pytest.mark.asyncio
    async def test_blank_password_means_unprotected(self, service):
        record = await service.create('o', ShareDraft('a', 'o/a', password='   '))

        assert record.password_hash is None
        assert record.hash_scheme is HashScheme.NONE

    @pytest.mark.asyncio
    async def test_token_generated_when_absent(self, service):
        first = await service.create('o', ShareDraft('a', 'o/a'))
        second = await service.create('o', ShareDraft('b', 'o/b'))

        assert len(first.token) >= 40
        assert first.token != second.token

    @pytest.mark.asyncio
    async def test_encrypted_share_keeps_iv(self, service):
        record = await service.create('o', ShareDraft(
            'a', 'o/a.enc', encryption_enabled=True, encryption_iv='AAECAwQFBgcICQoL',
        ))

        assert record.encryption_enabled is True
        assert record.encryption_iv == 'AAECAwQFBgcICQoL'

    @pytest.mark.asyncio
    async def test_invalid_draft_is_not_stored(self, service, share_store):
        with pytest.raises(InvalidShareMetadata):
            await service.create('o', ShareDraft('a', 'o/a', max_downloads=0))

        assert await share_store.list_recent(10) == []
