"""Domain exceptions raised by the share services.

Route factories translate these into ``{"success": false, "error": ...}``
JSON responses. Store failures use the separate ``SupabaseError`` hierarchy
in ``db.errors``.
"""

from __future__ import annotations

ADMIN_ACCESS_DENIED_MESSAGE = 'Admin access not configured for this user'


class ShareNotFound(Exception):
    """No share record matches the given id."""

    def __init__(self, share_id: str) -> None:
        self.share_id = share_id
        super().__init__(f'Share {share_id} not found')


class RateLimited(Exception):
    """The client exceeded the failed-attempt budget for a category."""

    def __init__(self, retry_after_seconds: int) -> None:
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f'Rate limited; retry after {retry_after_seconds}s')


class AdminAccessDenied(Exception):
    """Caller is unauthenticated or not on the admin allow-list.

    Both cases carry the same message so responses do not reveal which one
    applied.
    """

    def __init__(self) -> None:
        super().__init__(ADMIN_ACCESS_DENIED_MESSAGE)


class InvalidShareMetadata(ValueError):
    """Share creation payload violates a record invariant."""


class InvalidAdminAction(ValueError):
    """Unknown admin action name."""

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f'Invalid action: {action}')
