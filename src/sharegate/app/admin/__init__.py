"""Admin authorization, share mutations and the admin panel query."""

from .policy import AdminPolicy
from .service import AdminAction, AdminMutationService, AdminQueryService, PanelFilters
from .routes import create_admin_router

__all__ = [
    'AdminAction',
    'AdminMutationService',
    'AdminPolicy',
    'AdminQueryService',
    'PanelFilters',
    'create_admin_router',
]
