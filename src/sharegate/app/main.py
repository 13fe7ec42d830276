"""sharegate FastAPI application factory.

The create_app() factory is the single entry point for building the ASGI
application. It wires middleware (request-ID, metrics, request logging, CORS), the route
factories, and injects store/provider implementations.

Usage:
    # Local development (in-memory stores)
    from sharegate.app import create_app, ShareGateSettings
    app = create_app(ShareGateSettings())

    # Non-local (Supabase stores built from settings)
    app = create_app(ShareGateSettings.from_env())

    # Testing (full DI control)
    app = create_app(settings, share_store=store, audit_store=audit, ...)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from ..observability import configure_logging, metrics_text
from ..observability.middleware import (
    MetricsMiddleware,
    RequestIdMiddleware,
    RequestLoggingMiddleware,
)
from .admin.policy import AdminPolicy
from .admin.routes import create_admin_router
from .admin.service import AdminMutationService, AdminQueryService
from .operations.retention import RetentionConfig, RetentionJob
from .operations.routes import create_operations_router
from .protocols import AuditLogStore, GeoLocator, ObjectStorage, ShareRecordStore
from .responses import error_response
from .security.token_verify import TokenVerifier, create_token_verifier
from .settings import ShareGateSettings
from .sharing.client_ip import IpapiGeoLocator
from .sharing.credentials import CredentialVerifier
from .sharing.gate import DownloadGate
from .sharing.metadata import ShareMetadataService
from .sharing.rate_limit import FailedAttemptRateLimiter, RateLimitConfig
from .sharing.routes import create_share_router

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppDependencies:
    """Container for injected store/provider instances.

    Stored on ``app.state.deps`` so route handlers and dependencies can
    reach them.
    """

    share_store: ShareRecordStore
    audit_store: AuditLogStore
    object_storage: ObjectStorage
    geo_locator: GeoLocator | None
    token_verifier: TokenVerifier | None
    admin_policy: AdminPolicy


def _build_inmemory_stores() -> tuple[ShareRecordStore, AuditLogStore, ObjectStorage]:
    from .inmemory import InMemoryAuditLogStore, InMemoryObjectStorage, InMemoryShareRecordStore

    return InMemoryShareRecordStore(), InMemoryAuditLogStore(), InMemoryObjectStorage()


def _build_supabase_stores(
    settings: ShareGateSettings,
) -> tuple[ShareRecordStore, AuditLogStore, ObjectStorage]:
    from .db import (
        SupabaseAuditLogStore,
        SupabaseClient,
        SupabaseShareRecordStore,
        SupabaseStorageClient,
    )

    client = SupabaseClient(
        supabase_url=settings.supabase_url,
        service_role_key=settings.supabase_service_role_key,
    )
    storage = SupabaseStorageClient(
        supabase_url=settings.supabase_url,
        service_role_key=settings.supabase_service_role_key,
        bucket=settings.storage_bucket,
    )
    return SupabaseShareRecordStore(client), SupabaseAuditLogStore(client), storage


def _build_token_verifier(settings: ShareGateSettings) -> TokenVerifier | None:
    if not settings.supabase_jwt_secret and not settings.supabase_url:
        logger.warning('No JWT secret or Supabase URL configured; bearer auth disabled')
        return None
    return create_token_verifier(
        supabase_url=settings.supabase_url or None,
        jwt_secret=settings.supabase_jwt_secret or None,
    )


def create_app(
    settings: ShareGateSettings | None = None,
    *,
    share_store: ShareRecordStore | None = None,
    audit_store: AuditLogStore | None = None,
    object_storage: ObjectStorage | None = None,
    geo_locator: GeoLocator | None = None,
    token_verifier: TokenVerifier | None = None,
) -> FastAPI:
    """Create a configured sharegate FastAPI application.

    Args:
        settings: Application settings. Defaults to local-dev settings.
        share_store..token_verifier: Overrides. Missing stores are in-memory
            in local mode and Supabase-backed otherwise.

    Raises:
        ValueError: If settings validation fails.
    """
    if settings is None:
        settings = ShareGateSettings()

    errors = settings.validate()
    if errors:
        raise ValueError(
            'sharegate settings validation failed:\n'
            + '\n'.join(f'  - {e}' for e in errors)
        )

    if share_store is None or audit_store is None or object_storage is None:
        if settings.is_local:
            defaults = _build_inmemory_stores()
        else:
            defaults = _build_supabase_stores(settings)
        share_store = share_store or defaults[0]
        audit_store = audit_store or defaults[1]
        object_storage = object_storage or defaults[2]

    if geo_locator is None and not settings.is_local:
        geo_locator = IpapiGeoLocator(
            url_template=settings.geo_lookup_url,
            timeout_seconds=settings.geo_lookup_timeout_seconds,
        )

    deps = AppDependencies(
        share_store=share_store,
        audit_store=audit_store,
        object_storage=object_storage,
        geo_locator=geo_locator,
        token_verifier=token_verifier or _build_token_verifier(settings),
        admin_policy=AdminPolicy(settings.admin_user_ids),
    )

    rate_limiter = FailedAttemptRateLimiter(
        deps.audit_store,
        RateLimitConfig(
            max_failed_attempts=settings.rate_limit_max_failed_attempts,
            window_seconds=settings.rate_limit_window_seconds,
        ),
    )
    gate = DownloadGate(
        deps.share_store,
        deps.audit_store,
        deps.object_storage,
        rate_limiter,
        signed_url_ttl_seconds=settings.signed_url_ttl_seconds,
    )
    verifier = CredentialVerifier(deps.share_store, deps.audit_store, rate_limiter)
    retention_job = RetentionJob(
        deps.share_store,
        deps.audit_store,
        deps.object_storage,
        RetentionConfig(
            retention_days=settings.access_log_retention_days,
            rate_limit_spike_threshold=settings.rate_limit_spike_threshold,
            failure_spike_threshold=settings.failure_spike_threshold,
        ),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(
            level=settings.log_level,
            json_output=settings.log_format == 'json',
            environment=settings.environment,
        )
        logger.info('sharegate startup (environment=%s)', settings.environment)
        yield
        aclose = getattr(deps.geo_locator, 'aclose', None)
        if aclose is not None:
            await aclose()
        logger.info('sharegate shutdown')

    app = FastAPI(
        title='sharegate',
        description='Gated, expiring, auditable file share links',
        version='0.1.0',
        lifespan=lifespan,
    )
    app.state.deps = deps
    app.state.settings = settings

    # ── Middleware stack (last added runs first) ─────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=['POST', 'GET', 'OPTIONS'],
        allow_headers=['*'],
        expose_headers=['Retry-After', 'X-Request-ID'],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIdMiddleware)

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request, exc: RequestValidationError):
        return error_response(400, 'Invalid request body')

    # ── Routes ──────────────────────────────────────────────────

    @app.get('/health')
    async def health():
        return {'status': 'ok', 'environment': settings.environment}

    @app.get('/metrics')
    async def metrics():
        body, content_type = metrics_text()
        return Response(content=body, media_type=content_type)

    app.include_router(create_share_router(
        gate,
        verifier,
        ShareMetadataService(deps.share_store),
        deps.geo_locator,
    ))
    app.include_router(create_admin_router(
        AdminMutationService(
            deps.admin_policy, deps.share_store, deps.audit_store, deps.object_storage,
        ),
        AdminQueryService(deps.admin_policy, deps.share_store, deps.audit_store),
    ))
    app.include_router(create_operations_router(retention_job, settings.ops_maintenance_key))

    return app


# For uvicorn, use the --factory flag:
#   uvicorn sharegate.app.main:create_app --factory
