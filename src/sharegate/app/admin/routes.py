"""Admin panel endpoints.

  POST /admin-panel-data     → recent shares, audit entries and metrics
  POST /admin-share-action   → revoke / extend / reset_download_count / delete

Missing, invalid and non-admin credentials all receive the same 403 body so
the response never tells a caller which check failed.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ..errors import AdminAccessDenied, InvalidAdminAction, ShareNotFound
from ..responses import error_response, internal_error
from ..security.auth import optional_auth_identity
from ..security.token_verify import AuthIdentity
from .service import (
    MAX_EXTEND_DAYS,
    AdminMutationService,
    AdminQueryService,
    PanelFilters,
)

logger = logging.getLogger(__name__)


class AdminPanelRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token_filter: str | None = Field(default=None, alias='tokenFilter')
    user_filter: str | None = Field(default=None, alias='userFilter')
    ip_filter: str | None = Field(default=None, alias='ipFilter')
    reason_filter: str | None = Field(default=None, alias='reasonFilter')


class AdminShareActionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_id: str | None = Field(default=None, alias='fileId')
    action: str | None = None
    extend_days: int | None = Field(default=None, alias='extendDays', le=MAX_EXTEND_DAYS)


def _denied(exc: AdminAccessDenied):
    return error_response(403, str(exc))


def create_admin_router(
    mutations: AdminMutationService,
    queries: AdminQueryService,
) -> APIRouter:
    router = APIRouter(tags=['admin'])

    @router.post('/admin-panel-data')
    async def admin_panel_data(
        body: AdminPanelRequest | None = None,
        identity: AuthIdentity | None = Depends(optional_auth_identity),
    ):
        body = body or AdminPanelRequest()
        filters = PanelFilters.from_values(
            token=body.token_filter,
            user=body.user_filter,
            ip=body.ip_filter,
            reason=body.reason_filter,
        )
        try:
            return await queries.panel_data(identity, filters)
        except AdminAccessDenied as exc:
            return _denied(exc)
        except Exception:
            return internal_error(logger, 'admin-panel-data')

    @router.post('/admin-share-action')
    async def admin_share_action(
        body: AdminShareActionRequest,
        identity: AuthIdentity | None = Depends(optional_auth_identity),
    ):
        try:
            # Authorize before validating input.
            mutations.policy.require_admin(identity)
            if not body.file_id or not body.action:
                return error_response(400, 'Missing fileId or action')
            return await mutations.apply(
                identity, body.file_id, body.action, body.extend_days,
            )
        except AdminAccessDenied as exc:
            return _denied(exc)
        except InvalidAdminAction as exc:
            return error_response(400, str(exc))
        except ShareNotFound:
            return error_response(404, 'File not found')
        except Exception:
            return internal_error(logger, 'admin-share-action')

    return router
