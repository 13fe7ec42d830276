"""JSON envelope helpers shared by the route factories.

Every endpoint answers with ``{"success": bool, ...}``; failures carry an
``error`` message safe to show to end users.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi.responses import JSONResponse

INTERNAL_ERROR_MESSAGE = 'Internal server error'


def error_response(
    status_code: int,
    message: str,
    *,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={'success': False, 'error': message, **extra},
        headers=headers,
    )


def internal_error(logger: logging.Logger, context: str, **extra: Any) -> JSONResponse:
    """Log the active exception and return an opaque 500."""
    logger.exception('Unhandled error in %s', context)
    return error_response(500, INTERNAL_ERROR_MESSAGE, **extra)
