"""Admin mutations on shares and the admin panel data query.

Every entry point re-checks the caller against the injected AdminPolicy, so
the services stay safe even when wired behind a route that forgot to.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..errors import InvalidAdminAction, ShareNotFound
from ..sharing.audit import RATE_LIMITED_REASONS, AuditOutcome
from ..sharing.model import ShareStatus, evaluate_share_status, format_timestamp, utcnow
from .policy import AdminPolicy

if TYPE_CHECKING:
    from ..protocols import AuditLogStore, ObjectStorage, ShareRecordStore
    from ..security.token_verify import AuthIdentity

logger = logging.getLogger(__name__)

DEFAULT_EXTEND_DAYS = 7
MAX_EXTEND_DAYS = 3650
PANEL_SHARE_LIMIT = 200
PANEL_LOG_LIMIT = 500


class AdminAction(str, Enum):
    REVOKE = 'revoke'
    EXTEND = 'extend'
    RESET_DOWNLOAD_COUNT = 'reset_download_count'
    DELETE = 'delete'

    @classmethod
    def parse(cls, value: str) -> AdminAction:
        try:
            return cls(value)
        except ValueError:
            raise InvalidAdminAction(value) from None


def extended_expiry(
    current: datetime | None, now: datetime, days: int | None,
) -> datetime:
    """New expiry ``days`` after the later of the current expiry and now.

    Missing or non-positive ``days`` fall back to the default extension;
    larger values are capped at ``MAX_EXTEND_DAYS``.
    """
    if days is None or days <= 0:
        days = DEFAULT_EXTEND_DAYS
    days = min(days, MAX_EXTEND_DAYS)
    base = max(current, now) if current is not None else now
    return base + timedelta(days=days)


class AdminMutationService:
    def __init__(
        self,
        policy: AdminPolicy,
        share_store: ShareRecordStore,
        audit_store: AuditLogStore,
        object_storage: ObjectStorage,
    ) -> None:
        self.policy = policy
        self._shares = share_store
        self._audit = audit_store
        self._storage = object_storage

    async def apply(
        self,
        caller: AuthIdentity | None,
        share_id: str,
        action: AdminAction | str,
        extend_days: int | None = None,
    ) -> dict[str, Any]:
        """Apply ``action`` to a share.

        Raises:
            AdminAccessDenied: Caller is not an admin.
            InvalidAdminAction: Unknown action name.
            ShareNotFound: No share with ``share_id``.
        """
        admin = self.policy.require_admin(caller)
        action = action if isinstance(action, AdminAction) else AdminAction.parse(action)

        record = await self._shares.get(share_id)
        if record is None:
            raise ShareNotFound(share_id)

        result: dict[str, Any] = {'success': True, 'action': action.value}

        if action is AdminAction.REVOKE:
            await self._shares.revoke(record.id)
        elif action is AdminAction.EXTEND:
            new_expiry = extended_expiry(record.expires_at, utcnow(), extend_days)
            await self._shares.set_expiry(record.id, new_expiry)
            result['expiresAt'] = format_timestamp(new_expiry)
        elif action is AdminAction.RESET_DOWNLOAD_COUNT:
            await self._shares.reset_download_count(record.id)
        elif action is AdminAction.DELETE:
            if record.stored_path:
                await self._storage.remove([record.stored_path])
            await self._audit.delete_for_shares([record.id])
            await self._shares.delete([record.id])

        logger.info(
            'Admin %s applied %s to share %s', admin.user_id, action.value, record.id,
        )
        return result


@dataclass(frozen=True)
class PanelFilters:
    token: str = ''
    user: str = ''
    ip: str = ''
    reason: str = ''

    @classmethod
    def from_values(cls, **values: str | None) -> PanelFilters:
        return cls(**{k: (v or '').strip().lower() for k, v in values.items()})


def _contains(haystack: str | None, needle: str) -> bool:
    return not needle or needle in (haystack or '').lower()


class AdminQueryService:
    def __init__(
        self,
        policy: AdminPolicy,
        share_store: ShareRecordStore,
        audit_store: AuditLogStore,
    ) -> None:
        self._policy = policy
        self._shares = share_store
        self._audit = audit_store

    async def panel_data(
        self,
        caller: AuthIdentity | None,
        filters: PanelFilters | None = None,
    ) -> dict[str, Any]:
        """Recent shares and audit entries with aggregate metrics.

        Metrics are computed over the unfiltered recent window; filters only
        narrow the returned lists.
        """
        self._policy.require_admin(caller)
        filters = filters or PanelFilters()
        now = utcnow()

        shares = await self._shares.list_recent(PANEL_SHARE_LIMIT)
        entries = await self._audit.list_recent(PANEL_LOG_LIMIT)
        by_id = {share.id: share for share in shares}

        statuses = {share.id: evaluate_share_status(share, now) for share in shares}
        metrics = {
            'totalUsers': len({share.owner_id for share in shares}),
            'totalFiles': len(shares),
            'totalDownloads': sum(share.download_count for share in shares),
            'failedAttempts': sum(
                1 for e in entries if e.outcome is AuditOutcome.FAILED
            ),
            'rateLimitedAttempts': sum(
                1 for e in entries if e.reason in RATE_LIMITED_REASONS
            ),
            'activeShares': sum(1 for s in statuses.values() if s is ShareStatus.ACTIVE),
            'expiredLinks': sum(1 for s in statuses.values() if s is ShareStatus.EXPIRED),
            'revokedLinks': sum(1 for s in statuses.values() if s is ShareStatus.REVOKED),
        }

        files = []
        for share in shares:
            if not (_contains(share.token, filters.token) and _contains(share.owner_id, filters.user)):
                continue
            row = share.to_public_dict()
            row['status'] = statuses[share.id].value
            files.append(row)

        logs = []
        for entry in entries:
            share = by_id.get(entry.share_id)
            row = entry.to_dict()
            row['token'] = share.token if share else ''
            row['user_id'] = share.owner_id if share else ''
            row['original_name'] = share.original_name if share else 'Unknown'
            if (
                _contains(row['token'], filters.token)
                and _contains(row['user_id'], filters.user)
                and _contains(entry.client_ip, filters.ip)
                and _contains(entry.reason.value, filters.reason)
            ):
                logs.append(row)

        return {'success': True, 'metrics': metrics, 'files': files, 'logs': logs}
