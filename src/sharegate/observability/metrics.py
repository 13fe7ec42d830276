"""Prometheus metrics for sharegate.

Usage::

    from sharegate.observability.metrics import GATE_DECISIONS_TOTAL

    GATE_DECISIONS_TOTAL.labels(reason="download_initiated").inc()
"""

from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# ---------------------------------------------------------------------------
# HTTP request metrics
# ---------------------------------------------------------------------------

HTTP_REQUESTS_TOTAL = Counter(
    "http_server_requests_total",
    "Total HTTP requests by method, path, and status code.",
    labelnames=["method", "path", "status"],
    registry=REGISTRY,
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_server_request_duration_seconds",
    "HTTP request latency in seconds.",
    labelnames=["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=REGISTRY,
)

HTTP_REQUESTS_IN_FLIGHT = Gauge(
    "http_server_requests_in_flight",
    "Number of HTTP requests currently being processed.",
    registry=REGISTRY,
)

# ---------------------------------------------------------------------------
# Access gating
# ---------------------------------------------------------------------------

GATE_DECISIONS_TOTAL = Counter(
    "sharegate_gate_decisions_total",
    "Download gate outcomes by audit reason.",
    labelnames=["reason"],
    registry=REGISTRY,
)

PASSWORD_VERIFICATIONS_TOTAL = Counter(
    "sharegate_password_verifications_total",
    "Password verification attempts by result.",
    labelnames=["result"],
    registry=REGISTRY,
)

HASH_MIGRATIONS_TOTAL = Counter(
    "sharegate_hash_migrations_total",
    "Legacy digest credentials re-hashed with bcrypt.",
    registry=REGISTRY,
)

# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------

MAINTENANCE_ALERTS_TOTAL = Counter(
    "sharegate_maintenance_alerts_total",
    "Threshold alerts raised by the retention job.",
    labelnames=["type"],
    registry=REGISTRY,
)


def metrics_text() -> tuple[bytes, str]:
    """Generate Prometheus exposition text and content-type header."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
