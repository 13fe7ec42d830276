"""Public share access and owner share creation endpoints.

  POST /validate-and-download   → gate a download, mint a signed URL
  POST /verify-file-password    → check a share password
  POST /create-share-metadata   → persist a new share (bearer owner)

Auth contract:
  - The two public endpoints take no credentials; they are throttled per
    client IP through the audit log instead.
  - Share creation requires a verified bearer token (401 otherwise).

This module provides:
  ``create_share_router``: FastAPI router factory with injected deps.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ..db.errors import SupabaseConflictError
from ..errors import InvalidShareMetadata, RateLimited, ShareNotFound
from ..responses import error_response, internal_error
from ..security.auth import optional_auth_identity
from ..security.token_verify import AuthIdentity
from .client_ip import resolve_client_ip, resolve_geo_country
from .credentials import CredentialVerifier
from .gate import DownloadGate
from .metadata import ShareDraft, ShareMetadataService

if TYPE_CHECKING:
    from ..protocols import GeoLocator

logger = logging.getLogger(__name__)

RATE_LIMITED_MESSAGE = 'Too many failed attempts. Try again later.'


# ── Request schemas ──────────────────────────────────────────────────


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ValidateDownloadRequest(_CamelModel):
    file_id: str | None = Field(default=None, alias='fileId')


class VerifyPasswordRequest(_CamelModel):
    file_id: str | None = Field(default=None, alias='fileId')
    password: str | None = None


class CreateShareMetadataRequest(_CamelModel):
    original_name: str = Field(default='', alias='originalName')
    stored_path: str = Field(default='', alias='storedPath')
    token: str | None = None
    expires_at: datetime | None = Field(default=None, alias='expiresAt')
    max_downloads: int | None = Field(default=None, alias='maxDownloads')
    password: str | None = None
    encryption_enabled: bool = Field(default=False, alias='encryptionEnabled')
    encryption_iv: str | None = Field(default=None, alias='encryptionIv')


# ── Route factory ────────────────────────────────────────────────────


def create_share_router(
    gate: DownloadGate,
    verifier: CredentialVerifier,
    metadata_service: ShareMetadataService,
    geo_locator: GeoLocator | None = None,
) -> APIRouter:
    """Create the share access router with injected dependencies.

    Args:
        gate: Download gate.
        verifier: Password verifier.
        metadata_service: Share creation service.
        geo_locator: Fallback country lookup for audit entries.
    """
    router = APIRouter(tags=['shares'])

    async def _client_context(request: Request) -> tuple[str, str | None]:
        client_ip = resolve_client_ip(request.headers)
        geo_country = await resolve_geo_country(request.headers, client_ip, geo_locator)
        return client_ip, geo_country

    @router.post('/validate-and-download')
    async def validate_and_download(body: ValidateDownloadRequest, request: Request):
        """Gate one download; 200 carries a short-lived signed URL."""
        if not body.file_id:
            return error_response(400, 'Missing fileId')
        try:
            client_ip, geo_country = await _client_context(request)
            result = await gate.validate_and_download(body.file_id, client_ip, geo_country)
        except Exception:
            return internal_error(logger, 'validate-and-download')

        headers = None
        if result.retry_after_seconds is not None:
            headers = {'Retry-After': str(result.retry_after_seconds)}
        return JSONResponse(
            status_code=result.status_code, content=result.body, headers=headers,
        )

    @router.post('/verify-file-password')
    async def verify_file_password(body: VerifyPasswordRequest, request: Request):
        if not body.file_id or body.password is None:
            return error_response(400, 'Missing fileId or password', valid=False)
        try:
            client_ip, geo_country = await _client_context(request)
            result = await verifier.verify(body.file_id, body.password, client_ip, geo_country)
        except RateLimited as exc:
            return error_response(
                429,
                RATE_LIMITED_MESSAGE,
                valid=False,
                retryAfterSeconds=exc.retry_after_seconds,
                headers={'Retry-After': str(exc.retry_after_seconds)},
            )
        except ShareNotFound:
            return error_response(404, 'File not found', valid=False)
        except Exception:
            return internal_error(logger, 'verify-file-password', valid=False)
        return {'success': True, 'valid': result.valid}

    @router.post('/create-share-metadata')
    async def create_share_metadata(
        body: CreateShareMetadataRequest,
        identity: AuthIdentity | None = Depends(optional_auth_identity),
    ):
        """Persist a share for an object the caller already uploaded."""
        if identity is None:
            return error_response(
                401, 'Unauthorized', headers={'WWW-Authenticate': 'Bearer'},
            )
        draft = ShareDraft(
            original_name=body.original_name,
            stored_path=body.stored_path,
            token=body.token,
            expires_at=body.expires_at,
            max_downloads=body.max_downloads,
            password=body.password,
            encryption_enabled=body.encryption_enabled,
            encryption_iv=body.encryption_iv,
        )
        try:
            record = await metadata_service.create(identity.user_id, draft)
        except InvalidShareMetadata as exc:
            return error_response(400, str(exc))
        except SupabaseConflictError:
            return error_response(409, 'Share token already in use')
        except Exception:
            return internal_error(logger, 'create-share-metadata')
        return {'success': True, 'fileId': record.id, 'token': record.token}

    return router
