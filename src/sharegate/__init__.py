"""Gated, expiring, auditable file share links."""

__version__ = "0.1.0"
