"""Log formatting for sharegate.

The app modules log through plain ``logging.getLogger(__name__)`` while the
request middleware uses structlog key/value events. Both end up in a single
stdout handler whose ``ProcessorFormatter`` tags each line with the
deployment environment and, inside a request, the ``X-Request-ID`` that
``RequestIdMiddleware`` stored in ``request_id_ctx``.

Settings own the level and format; ``create_app`` calls ``configure_logging``
from its lifespan.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar

import structlog

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

# Chatty at INFO: httpx logs every PostgREST and Storage call.
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore")

_configured = False


def _add_request_id(logger, method_name: str, event_dict: dict) -> dict:
    rid = request_id_ctx.get()
    if rid is not None:
        event_dict["request_id"] = rid
    return event_dict


def _tag_environment(environment: str):
    def processor(logger, method_name: str, event_dict: dict) -> dict:
        event_dict.setdefault("environment", environment)
        return event_dict

    return processor


def _pre_chain(environment: str) -> list:
    return [
        structlog.contextvars.merge_contextvars,
        _add_request_id,
        _tag_environment(environment),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]


def build_formatter(
    *, json_output: bool = True, environment: str = "local",
) -> structlog.stdlib.ProcessorFormatter:
    """Formatter rendering stdlib and structlog records the same way."""
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_pre_chain(environment),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def configure_logging(
    *,
    level: str = "INFO",
    json_output: bool = True,
    environment: str = "local",
) -> None:
    """Install the stdout handler on the root logger. Later calls are no-ops."""
    global _configured
    if _configured:
        return
    _configured = True

    structlog.configure(
        processors=[
            *_pre_chain(environment),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        build_formatter(json_output=json_output, environment=environment),
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
