"""Tests for share password verification and legacy hash migration."""

from __future__ import annotations

import pytest

from sharegate.app.errors import RateLimited, ShareNotFound
from sharegate.app.sharing.audit import AuditReason
from sharegate.app.sharing.credentials import (
    CredentialVerifier,
    hash_password,
    legacy_digest,
    verify_bcrypt,
)
from sharegate.app.sharing.model import HashScheme
from sharegate.app.sharing.rate_limit import FailedAttemptRateLimiter

IP = '203.0.113.7'


@pytest.fixture
def verifier(share_store, audit_store, fast_pwd_context):
    return CredentialVerifier(
        share_store,
        audit_store,
        FailedAttemptRateLimiter(audit_store),
        pwd_context=fast_pwd_context,
    )


class TestLegacyMigration:
    @pytest.mark.asyncio
    async def test_correct_password_migrates_to_bcrypt(
        self, verifier, make_share, share_store, fast_pwd_context,
    ):
        share = await make_share(
            password_hash=legacy_digest('hunter2'),
            hash_scheme=HashScheme.LEGACY_DIGEST,
        )

        result = await verifier.verify(share.id, 'hunter2', IP)

        assert result.valid is True
        assert result.migrated is True
        stored = await share_store.get(share.id)
        assert stored.hash_scheme is HashScheme.BCRYPT
        assert stored.password_hash != legacy_digest('hunter2')
        assert fast_pwd_context.verify('hunter2', stored.password_hash)

    @pytest.mark.asyncio
    async def test_second_verification_uses_bcrypt(self, verifier, make_share):
        share = await make_share(
            password_hash=legacy_digest('hunter2'),
            hash_scheme=HashScheme.LEGACY_DIGEST,
        )
        await verifier.verify(share.id, 'hunter2', IP)

        again = await verifier.verify(share.id, 'hunter2', IP)

        assert again.valid is True
        assert again.migrated is False

    @pytest.mark.asyncio
    async def test_wrong_password_leaves_legacy_hash(
        self, verifier, make_share, share_store, audit_store,
    ):
        share = await make_share(
            password_hash=legacy_digest('hunter2'),
            hash_scheme=HashScheme.LEGACY_DIGEST,
        )

        result = await verifier.verify(share.id, 'wrong', IP)

        assert result.valid is False
        stored = await share_store.get(share.id)
        assert stored.hash_scheme is HashScheme.LEGACY_DIGEST
        assert stored.password_hash == legacy_digest('hunter2')
        assert len(audit_store.find(AuditReason.WRONG_PASSWORD, share.id)) == 1


class TestBcryptVerification:
    @pytest.mark.asyncio
    async def test_valid_and_invalid(self, verifier, make_share, fast_pwd_context):
        share = await make_share(
            password_hash=hash_password('s3cret', fast_pwd_context),
            hash_scheme=HashScheme.BCRYPT,
        )

        assert (await verifier.verify(share.id, 's3cret', IP)).valid is True
        assert (await verifier.verify(share.id, 'nope', IP)).valid is False

    @pytest.mark.asyncio
    async def test_unknown_scheme_never_verifies(
        self, verifier, make_share, share_store, audit_store,
    ):
        share = await make_share(
            password_hash='$argon2id$v=19$m=65536$abc',
            hash_scheme=HashScheme.UNKNOWN,
        )

        result = await verifier.verify(share.id, 'anything', IP)

        assert result.valid is False
        assert result.migrated is False
        assert (await share_store.get(share.id)).hash_scheme is HashScheme.UNKNOWN
        assert len(audit_store.find(AuditReason.WRONG_PASSWORD, share.id)) == 1

    def test_malformed_hash_counts_as_mismatch(self, fast_pwd_context):
        assert verify_bcrypt('anything', 'not-a-bcrypt-hash', fast_pwd_context) is False

    @pytest.mark.asyncio
    async def test_unprotected_share_is_valid_and_not_logged(
        self, verifier, make_share, audit_store,
    ):
        share = await make_share()

        result = await verifier.verify(share.id, 'whatever', IP)

        assert result.valid is True
        assert audit_store.entries == []

    @pytest.mark.asyncio
    async def test_missing_share_raises_without_logging(self, verifier, audit_store):
        with pytest.raises(ShareNotFound):
            await verifier.verify('missing', 'pw', IP)
        assert audit_store.entries == []


class TestPasswordRateLimit:
    @pytest.mark.asyncio
    async def test_sixth_attempt_is_rate_limited(self, verifier, make_share, audit_store):
        share = await make_share(
            password_hash=legacy_digest('right'),
            hash_scheme=HashScheme.LEGACY_DIGEST,
        )
        for _ in range(5):
            assert (await verifier.verify(share.id, 'wrong', IP)).valid is False

        with pytest.raises(RateLimited) as excinfo:
            await verifier.verify(share.id, 'right', IP)

        assert excinfo.value.retry_after_seconds >= 1
        assert len(audit_store.find(AuditReason.PASSWORD_RATE_LIMITED)) == 1

    @pytest.mark.asyncio
    async def test_other_ip_can_still_verify(self, verifier, make_share):
        share = await make_share(
            password_hash=legacy_digest('right'),
            hash_scheme=HashScheme.LEGACY_DIGEST,
        )
        for _ in range(5):
            await verifier.verify(share.id, 'wrong', IP)

        result = await verifier.verify(share.id, 'right', '198.51.100.9')

        assert result.valid is True
