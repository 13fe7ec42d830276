"""Admin authorization policy.

The allow-list is injected from configuration rather than baked into code, so
rotating admins needs no deploy. An empty allow-list denies everyone.
"""

from __future__ import annotations

from typing import Iterable

from ..errors import AdminAccessDenied
from ..security.token_verify import AuthIdentity


class AdminPolicy:
    def __init__(self, admin_user_ids: Iterable[str] = ()) -> None:
        self._admin_user_ids = frozenset(
            uid.strip() for uid in admin_user_ids if uid and uid.strip()
        )

    @property
    def configured(self) -> bool:
        return bool(self._admin_user_ids)

    def is_admin(self, identity: AuthIdentity | None) -> bool:
        return identity is not None and identity.user_id in self._admin_user_ids

    def require_admin(self, identity: AuthIdentity | None) -> AuthIdentity:
        """Return ``identity`` if it is an admin, else raise AdminAccessDenied."""
        if not self.is_admin(identity):
            raise AdminAccessDenied()
        return identity
