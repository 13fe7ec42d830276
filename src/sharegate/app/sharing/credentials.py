"""Share password verification with lazy bcrypt migration.

Shares created before the bcrypt rollout store an unsalted SHA-256 hex digest.
Such a credential is upgraded in place the first time its correct password is
presented; a wrong password never touches the stored hash.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from passlib.context import CryptContext

from ...observability.metrics import HASH_MIGRATIONS_TOTAL, PASSWORD_VERIFICATIONS_TOTAL
from ..errors import RateLimited, ShareNotFound
from .audit import RATE_LIMIT_REASONS, AttemptCategory, AuditReason, record_attempt
from .model import HashScheme, utcnow

if TYPE_CHECKING:
    from ..protocols import AuditLogStore, ShareRecordStore
    from .rate_limit import FailedAttemptRateLimiter

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 10

default_pwd_context = CryptContext(
    schemes=['bcrypt'],
    deprecated='auto',
    bcrypt__rounds=BCRYPT_ROUNDS,
)


def legacy_digest(password: str) -> str:
    """Unsalted SHA-256 hex digest used by pre-bcrypt shares."""
    return hashlib.sha256(password.encode('utf-8')).hexdigest()


def hash_password(password: str, pwd_context: CryptContext = default_pwd_context) -> str:
    return pwd_context.hash(password)


def verify_bcrypt(
    password: str, stored_hash: str, pwd_context: CryptContext = default_pwd_context,
) -> bool:
    """bcrypt check; a malformed stored hash counts as a mismatch."""
    try:
        return pwd_context.verify(password, stored_hash)
    except (ValueError, TypeError):
        logger.warning('Stored bcrypt hash is malformed')
        return False


def verify_legacy_digest(password: str, stored_hash: str) -> bool:
    return hmac.compare_digest(
        legacy_digest(password).encode('ascii'),
        stored_hash.strip().lower().encode('ascii', errors='replace'),
    )


@dataclass(frozen=True, slots=True)
class VerificationResult:
    valid: bool
    migrated: bool = False


class CredentialVerifier:
    """Checks share passwords under the ``password`` rate-limit category.

    Args:
        share_store: Source of share records; receives migrated hashes.
        audit_store: Receives ``wrong_password`` and
            ``password_rate_limited`` entries.
        rate_limiter: Failed-attempt limiter shared with the download gate.
        pwd_context: passlib context used for bcrypt hashing.
    """

    def __init__(
        self,
        share_store: ShareRecordStore,
        audit_store: AuditLogStore,
        rate_limiter: FailedAttemptRateLimiter,
        pwd_context: CryptContext = default_pwd_context,
    ) -> None:
        self._shares = share_store
        self._audit = audit_store
        self._rate_limiter = rate_limiter
        self._pwd_context = pwd_context

    async def verify(
        self,
        share_id: str,
        password: str,
        client_ip: str,
        geo_country: str | None = None,
    ) -> VerificationResult:
        """Verify ``password`` against the share's stored credential.

        Raises:
            RateLimited: Too many recent failures from ``client_ip``.
            ShareNotFound: No share with ``share_id``.
        """
        now = utcnow()
        decision = await self._rate_limiter.check(client_ip, AttemptCategory.PASSWORD, now)
        if decision.limited:
            await record_attempt(
                self._audit,
                share_id=share_id,
                reason=RATE_LIMIT_REASONS[AttemptCategory.PASSWORD],
                client_ip=client_ip,
                geo_country=geo_country,
                now=now,
            )
            PASSWORD_VERIFICATIONS_TOTAL.labels(result='rate_limited').inc()
            raise RateLimited(decision.retry_after_seconds or 1)

        record = await self._shares.get(share_id)
        if record is None:
            raise ShareNotFound(share_id)

        if not record.is_password_protected:
            return VerificationResult(valid=True)

        migrated = False
        if record.hash_scheme is HashScheme.UNKNOWN:
            logger.warning(
                'Share %s has an unrecognised password hash version; rejecting', record.id,
            )
            valid = False
        elif record.hash_scheme is HashScheme.BCRYPT:
            valid = await asyncio.to_thread(
                verify_bcrypt, password, record.password_hash, self._pwd_context,
            )
        else:
            valid = verify_legacy_digest(password, record.password_hash)
            if valid:
                await self._migrate(record.id, password)
                migrated = True

        if not valid:
            await record_attempt(
                self._audit,
                share_id=share_id,
                reason=AuditReason.WRONG_PASSWORD,
                client_ip=client_ip,
                geo_country=geo_country,
                now=now,
            )
            PASSWORD_VERIFICATIONS_TOTAL.labels(result='invalid').inc()
            return VerificationResult(valid=False)

        PASSWORD_VERIFICATIONS_TOTAL.labels(result='valid').inc()
        return VerificationResult(valid=True, migrated=migrated)

    async def _migrate(self, share_id: str, password: str) -> None:
        new_hash = await asyncio.to_thread(hash_password, password, self._pwd_context)
        await self._shares.update_password_hash(share_id, new_hash, HashScheme.BCRYPT)
        HASH_MIGRATIONS_TOTAL.inc()
        logger.info('Migrated legacy password hash to bcrypt for share %s', share_id)
