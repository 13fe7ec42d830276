"""Share records, access gating, credential checks and the audit trail."""

from .model import (
    HashScheme,
    ShareRecord,
    ShareStatus,
    evaluate_share_status,
    generate_share_token,
)
from .audit import (
    AttemptCategory,
    AuditLogEntry,
    AuditOutcome,
    AuditReason,
    record_attempt,
)
from .rate_limit import FailedAttemptRateLimiter, RateLimitConfig, RateLimitDecision
from .credentials import CredentialVerifier, VerificationResult, hash_password
from .gate import DownloadGate, GateResult
from .metadata import ShareDraft, ShareMetadataService
from .routes import create_share_router

__all__ = [
    'AttemptCategory',
    'AuditLogEntry',
    'AuditOutcome',
    'AuditReason',
    'CredentialVerifier',
    'DownloadGate',
    'FailedAttemptRateLimiter',
    'GateResult',
    'HashScheme',
    'RateLimitConfig',
    'RateLimitDecision',
    'ShareDraft',
    'ShareMetadataService',
    'ShareRecord',
    'ShareStatus',
    'VerificationResult',
    'create_share_router',
    'evaluate_share_status',
    'generate_share_token',
    'hash_password',
    'record_attempt',
]
