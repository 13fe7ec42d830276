"""Supabase adapters for the share, audit and object stores."""

from .audit_store import SupabaseAuditLogStore
from .errors import (
    SupabaseAuthError,
    SupabaseConflictError,
    SupabaseError,
    SupabaseNotFoundError,
)
from .share_store import SupabaseShareRecordStore
from .storage_client import SupabaseStorageClient
from .supabase_client import PostgrestFilter, SupabaseClient

__all__ = [
    "PostgrestFilter",
    "SupabaseAuditLogStore",
    "SupabaseAuthError",
    "SupabaseClient",
    "SupabaseConflictError",
    "SupabaseError",
    "SupabaseNotFoundError",
    "SupabaseShareRecordStore",
    "SupabaseStorageClient",
]
