"""Request-level authentication helpers.

Public share routes take no credentials, so authentication is resolved per
route through a FastAPI dependency instead of a blanket middleware. Each
route decides how a missing identity is reported (401 for owners, a uniform
403 for admin routes).
"""

from __future__ import annotations

import logging

from starlette.requests import Request

from .token_verify import (
    AuthIdentity,
    TokenVerificationError,
    TokenVerifier,
    extract_bearer_token,
)

logger = logging.getLogger(__name__)


def verify_request(request: Request, verifier: TokenVerifier | None) -> AuthIdentity | None:
    """Identity from the request's bearer token, or None when absent or invalid."""
    token = extract_bearer_token(request)
    if token is None or verifier is None:
        return None
    try:
        return verifier.verify(token)
    except TokenVerificationError as exc:
        logger.info('Bearer token rejected: %s', exc.code)
        return None


def optional_auth_identity(request: Request) -> AuthIdentity | None:
    """FastAPI dependency resolving the caller against the app's verifier."""
    deps = getattr(request.app.state, 'deps', None)
    verifier = getattr(deps, 'token_verifier', None)
    identity = verify_request(request, verifier)
    request.state.auth_identity = identity
    return identity
