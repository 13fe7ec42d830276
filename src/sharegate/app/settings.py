"""Service configuration settings.

ShareGateSettings is the single configuration object accepted by create_app().
It is a plain dataclass (not env-coupled) so tests can inject config without
touching os.environ.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_CORS_ORIGINS: tuple[str, ...] = (
    "http://localhost:5173",
    "http://localhost:3000",
)


def _env_int(env: dict[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _env_float(env: dict[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


def _env_list(env: dict[str, str], name: str) -> tuple[str, ...]:
    return tuple(v.strip() for v in env.get(name, "").split(",") if v.strip())


@dataclass(frozen=True, slots=True)
class ShareGateSettings:
    """Configuration for the sharegate FastAPI application.

    Defaults suit local development, where in-memory stores are wired in.
    Non-local environments must supply Supabase credentials.
    """

    # ── Environment ────────────────────────────────────────────────
    environment: str = "local"
    """One of: local, dev, staging, production."""

    # ── Supabase ───────────────────────────────────────────────────
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    """Service-role key for PostgREST and Storage calls. Never log this."""

    supabase_jwt_secret: str = ""
    """HS256 project secret for verifying user access tokens."""

    storage_bucket: str = "files"

    # ── Access control ─────────────────────────────────────────────
    admin_user_ids: tuple[str, ...] = ()
    ops_maintenance_key: str = ""
    """Shared secret for the maintenance endpoint. Empty disables it."""

    # ── Access gating ──────────────────────────────────────────────
    rate_limit_window_seconds: int = 600
    rate_limit_max_failed_attempts: int = 5
    signed_url_ttl_seconds: int = 60
    geo_lookup_url: str = "https://ipapi.co/{ip}/country/"
    geo_lookup_timeout_seconds: float = 0.7

    # ── Retention & alerting ───────────────────────────────────────
    access_log_retention_days: int = 90
    rate_limit_spike_threshold: int = 50
    failure_spike_threshold: int = 100

    # ── HTTP / logging ─────────────────────────────────────────────
    cors_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS
    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def is_local(self) -> bool:
        return self.environment == "local"

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        if not self.is_local:
            if not self.supabase_url:
                errors.append(f"{self.environment}: supabase_url is required")
            if not self.supabase_service_role_key:
                errors.append(
                    f"{self.environment}: supabase_service_role_key is required"
                )
        if self.rate_limit_max_failed_attempts < 1:
            errors.append("rate_limit_max_failed_attempts must be >= 1")
        if self.rate_limit_window_seconds < 1:
            errors.append("rate_limit_window_seconds must be >= 1")
        if self.signed_url_ttl_seconds < 1:
            errors.append("signed_url_ttl_seconds must be >= 1")
        return errors

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> ShareGateSettings:
        """Build settings from environment variables.

        Unparseable numbers fall back to their defaults. Tests should
        construct ShareGateSettings directly.
        """
        if env is None:
            env = dict(os.environ)

        return cls(
            environment=env.get("ENVIRONMENT", "local"),
            supabase_url=env.get("SUPABASE_URL", ""),
            supabase_service_role_key=env.get("SUPABASE_SERVICE_ROLE_KEY", ""),
            supabase_jwt_secret=env.get("SUPABASE_JWT_SECRET", ""),
            storage_bucket=env.get("STORAGE_BUCKET", "") or "files",
            admin_user_ids=_env_list(env, "ADMIN_USER_IDS"),
            ops_maintenance_key=env.get("OPS_MAINTENANCE_KEY", ""),
            rate_limit_window_seconds=_env_int(env, "RATE_LIMIT_WINDOW_SECONDS", 600),
            rate_limit_max_failed_attempts=_env_int(env, "RATE_LIMIT_MAX_FAILED_ATTEMPTS", 5),
            signed_url_ttl_seconds=_env_int(env, "SIGNED_URL_TTL_SECONDS", 60),
            geo_lookup_url=env.get("GEO_LOOKUP_URL", "") or "https://ipapi.co/{ip}/country/",
            geo_lookup_timeout_seconds=_env_float(env, "GEO_LOOKUP_TIMEOUT_SECONDS", 0.7),
            access_log_retention_days=_env_int(env, "ACCESS_LOG_RETENTION_DAYS", 90),
            rate_limit_spike_threshold=_env_int(env, "RATE_LIMIT_SPIKE_THRESHOLD", 50),
            failure_spike_threshold=_env_int(env, "FAILURE_SPIKE_THRESHOLD", 100),
            cors_origins=_env_list(env, "CORS_ORIGINS") or DEFAULT_CORS_ORIGINS,
            log_level=env.get("LOG_LEVEL", "INFO"),
            log_format=env.get("LOG_FORMAT", "json"),
        )
