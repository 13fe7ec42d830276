"""Authentication utilities."""

from .auth import optional_auth_identity, verify_request
from .token_verify import (
    AuthIdentity,
    TokenVerificationError,
    TokenVerifier,
    create_token_verifier,
    extract_bearer_token,
)

__all__ = [
    'AuthIdentity',
    'TokenVerificationError',
    'TokenVerifier',
    'create_token_verifier',
    'extract_bearer_token',
    'optional_auth_identity',
    'verify_request',
]
