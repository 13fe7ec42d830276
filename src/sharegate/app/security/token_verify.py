"""Supabase JWT verification.

Validates Supabase-issued access tokens presented as
``Authorization: Bearer <token>`` and extracts the caller identity.

Two key sources are supported:
  - the project's HS256 JWT secret (``SUPABASE_JWT_SECRET``), and
  - the project's JWKS endpoint for asymmetric (RS256/ES256) signing keys,
    cached by PyJWKClient.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

import jwt
from jwt import PyJWKClient, PyJWKClientError
from starlette.requests import Request

DEFAULT_AUDIENCE = 'authenticated'
JWKS_CACHE_TTL_SECONDS = 300
BEARER_PREFIX = 'Bearer '


@dataclass(frozen=True, slots=True)
class AuthIdentity:
    """Verified caller identity.

    Attributes:
        user_id: Supabase auth user UUID (``sub`` claim).
        email: Lower-cased email, empty when the token carries none.
        role: Supabase role claim.
        raw_claims: Full decoded payload.
    """

    user_id: str
    email: str = ''
    role: str = 'authenticated'
    raw_claims: dict[str, Any] = field(default_factory=dict)


class TokenVerificationError(Exception):
    def __init__(self, code: str, detail: str = '') -> None:
        self.code = code
        self.detail = detail
        super().__init__(f'{code}: {detail}' if detail else code)


class KeyProvider(Protocol):
    def get_signing_key(self, token: str) -> Any: ...


class JWKSKeyProvider:
    """Signing keys from a JWKS endpoint, cached for ``cache_ttl`` seconds."""

    def __init__(self, jwks_url: str, cache_ttl: int = JWKS_CACHE_TTL_SECONDS) -> None:
        self._client = PyJWKClient(jwks_url, cache_jwk_set=True, lifespan=cache_ttl)

    def get_signing_key(self, token: str) -> Any:
        try:
            return self._client.get_signing_key_from_jwt(token).key
        except PyJWKClientError as exc:
            raise TokenVerificationError('jwks_fetch_error', str(exc)) from exc


class StaticKeyProvider:
    def __init__(self, secret: str) -> None:
        self._secret = secret

    def get_signing_key(self, token: str) -> str:
        return self._secret


class TokenVerifier:
    """Verifies Supabase JWTs and extracts identity claims.

    Args:
        key_provider: Resolves the signing key for a token.
        audience: Expected ``aud`` claim.
        algorithms: Accepted JWT algorithms.
    """

    def __init__(
        self,
        key_provider: KeyProvider,
        audience: str = DEFAULT_AUDIENCE,
        algorithms: list[str] | None = None,
    ) -> None:
        self._key_provider = key_provider
        self._audience = audience
        self._algorithms = algorithms or ['RS256']

    def verify(self, token: str) -> AuthIdentity:
        """Verify ``token`` and return the identity it asserts.

        Raises:
            TokenVerificationError: On any verification failure.
        """
        if not token or not token.strip():
            raise TokenVerificationError('empty_token')

        key = self._key_provider.get_signing_key(token)
        try:
            claims = jwt.decode(
                token,
                key,
                algorithms=self._algorithms,
                audience=self._audience,
                options={'require': ['sub', 'exp', 'aud']},
            )
        except jwt.ExpiredSignatureError:
            raise TokenVerificationError('token_expired')
        except jwt.InvalidAudienceError:
            raise TokenVerificationError('invalid_audience', f'expected {self._audience}')
        except jwt.InvalidTokenError as exc:
            raise TokenVerificationError('invalid_token', str(exc))

        user_id = claims.get('sub')
        if not user_id:
            raise TokenVerificationError('missing_sub_claim')

        email = claims.get('email') or ''
        return AuthIdentity(
            user_id=str(user_id),
            email=email.lower(),
            role=claims.get('role', 'authenticated'),
            raw_claims=claims,
        )


def extract_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get('authorization', '')
    if auth_header.startswith(BEARER_PREFIX):
        return auth_header[len(BEARER_PREFIX):].strip() or None
    return None


def create_token_verifier(
    supabase_url: str | None = None,
    jwt_secret: str | None = None,
    audience: str = DEFAULT_AUDIENCE,
) -> TokenVerifier:
    """Build a verifier for the configured key source.

    The HS256 project secret wins when present; otherwise keys come from the
    project's JWKS endpoint.

    Raises:
        ValueError: If neither a secret nor a project URL is configured.
    """
    if jwt_secret:
        return TokenVerifier(
            StaticKeyProvider(jwt_secret), audience=audience, algorithms=['HS256'],
        )
    if supabase_url:
        jwks_url = f'{supabase_url.rstrip("/")}/auth/v1/.well-known/jwks.json'
        return TokenVerifier(
            JWKSKeyProvider(jwks_url), audience=audience, algorithms=['RS256', 'ES256'],
        )
    raise ValueError('Either jwt_secret (HS256) or supabase_url (JWKS) is required')
