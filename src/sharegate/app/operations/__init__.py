"""Retention sweep and abuse alerting."""

from .retention import (
    AlertType,
    MaintenanceSummary,
    RetentionConfig,
    RetentionJob,
    ThresholdAlert,
)
from .routes import create_operations_router

__all__ = [
    'AlertType',
    'MaintenanceSummary',
    'RetentionConfig',
    'RetentionJob',
    'ThresholdAlert',
    'create_operations_router',
]
