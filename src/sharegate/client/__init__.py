"""Client library: file encryption, conflict retry and the HTTP API client."""

from .api import ShareGateClient, ShareGateError, UploadedShare
from .encryption import (
    KEY_DERIVATION_VERSION,
    DecryptionError,
    EncryptedPayload,
    decrypt_file_content,
    derive_key,
    encrypt_file_content,
)
from .retry import (
    ConflictError,
    ConflictRetryExhausted,
    ConflictRetryPolicy,
    RateLimitedError,
    retry_on_conflict,
)

__all__ = [
    "ConflictError",
    "ConflictRetryExhausted",
    "ConflictRetryPolicy",
    "DecryptionError",
    "EncryptedPayload",
    "KEY_DERIVATION_VERSION",
    "RateLimitedError",
    "ShareGateClient",
    "ShareGateError",
    "UploadedShare",
    "decrypt_file_content",
    "derive_key",
    "encrypt_file_content",
    "retry_on_conflict",
]
