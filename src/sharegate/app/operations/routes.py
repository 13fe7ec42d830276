"""Maintenance trigger endpoint.

  POST /ops-maintenance   (header ``X-Ops-Key``) → run the retention job

Meant for a scheduler, not for users. The key is compared in constant time;
when no key is configured the endpoint rejects every call.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Header

from ..responses import error_response, internal_error
from .retention import RetentionJob

logger = logging.getLogger(__name__)


def ops_key_matches(configured: str, provided: str | None) -> bool:
    if not configured or not provided:
        return False
    return hmac.compare_digest(configured.encode('utf-8'), provided.encode('utf-8'))


def create_operations_router(job: RetentionJob, ops_key: str) -> APIRouter:
    router = APIRouter(tags=['operations'])

    @router.post('/ops-maintenance')
    async def ops_maintenance(x_ops_key: str | None = Header(default=None)):
        if not ops_key_matches(ops_key, x_ops_key):
            return error_response(401, 'Unauthorized')
        try:
            summary = await job.run()
        except Exception:
            return internal_error(logger, 'ops-maintenance')
        return {'success': True, 'summary': summary.to_dict()}

    return router
