"""Tests for ShareGateSettings construction and validation."""

from __future__ import annotations

from sharegate.app.settings import DEFAULT_CORS_ORIGINS, ShareGateSettings


def test_defaults_are_valid_local_settings():
    settings = ShareGateSettings()

    assert settings.is_local
    assert settings.validate() == []
    assert settings.rate_limit_max_failed_attempts == 5
    assert settings.rate_limit_window_seconds == 600
    assert settings.signed_url_ttl_seconds == 60
    assert settings.access_log_retention_days == 90


def test_non_local_requires_supabase_credentials():
    errors = ShareGateSettings(environment='staging').validate()

    assert 'staging: supabase_url is required' in errors
    assert 'staging: supabase_service_role_key is required' in errors


def test_limits_must_be_positive():
    errors = ShareGateSettings(
        rate_limit_max_failed_attempts=0, signed_url_ttl_seconds=0,
    ).validate()

    assert len(errors) == 2


def test_from_env_reads_all_fields():
    settings = ShareGateSettings.from_env({
        'ENVIRONMENT': 'production',
        'SUPABASE_URL': 'https://proj.supabase.co',
        'SUPABASE_SERVICE_ROLE_KEY': 'svc',
        'SUPABASE_JWT_SECRET': 'jwt',
        'ADMIN_USER_IDS': 'a1, a2,,',
        'OPS_MAINTENANCE_KEY': 'ops',
        'RATE_LIMIT_MAX_FAILED_ATTEMPTS': '3',
        'ACCESS_LOG_RETENTION_DAYS': '30',
        'GEO_LOOKUP_TIMEOUT_SECONDS': '1.5',
        'CORS_ORIGINS': 'https://share.example.com',
    })

    assert settings.validate() == []
    assert settings.admin_user_ids == ('a1', 'a2')
    assert settings.rate_limit_max_failed_attempts == 3
    assert settings.access_log_retention_days == 30
    assert settings.geo_lookup_timeout_seconds == 1.5
    assert settings.cors_origins == ('https://share.example.com',)


def test_from_env_falls_back_on_bad_numbers():
    settings = ShareGateSettings.from_env({
        'RATE_LIMIT_WINDOW_SECONDS': 'ten minutes',
        'GEO_LOOKUP_TIMEOUT_SECONDS': 'fast',
    })

    assert settings.rate_limit_window_seconds == 600
    assert settings.geo_lookup_timeout_seconds == 0.7
    assert settings.cors_origins == DEFAULT_CORS_ORIGINS
    assert settings.storage_bucket == 'files'
