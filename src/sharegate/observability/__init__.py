"""Structured logging, Prometheus metrics, and request-ID middleware.

Quick start::

    from sharegate.observability import configure_logging
    from sharegate.observability.middleware import (
        MetricsMiddleware,
        RequestIdMiddleware,
        RequestLoggingMiddleware,
    )

    configure_logging()
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIdMiddleware)
"""

from .logging import build_formatter, configure_logging, get_logger, request_id_ctx
from .metrics import metrics_text

__all__ = [
    "build_formatter",
    "configure_logging",
    "get_logger",
    "metrics_text",
    "request_id_ctx",
]
