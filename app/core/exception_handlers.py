"""Global exception handlers for consistent error responses.

The validation service already converts its own failures into envelopes.
These handlers are the outer safety net: anything raised elsewhere in the
request (middleware, routing, future endpoints) is still rendered as the same
``{ok, valid, message}`` envelope with a proper HTTP status code.

Design:
- AppError subclasses → their ``http_status`` (400, 429, 504, ...)
- Unexpected Exception → generic 500 (no internal details leaked)
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.errors import AppError, RateLimitAppError
from app.core.logging import get_request_id
from app.core.rate_limit import build_rate_limit_headers
from app.schemas.validation import ValidateResponse
from app.services.validation_service import INTERNAL_ERROR_MESSAGE

logger = logging.getLogger(__name__)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render a domain error as an envelope with the error's status code.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with ``{ok: false, valid: null, message}``.
    """
    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": exc.http_status,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        },
    )

    headers = build_rate_limit_headers(exc.details) if isinstance(exc, RateLimitAppError) else None

    return JSONResponse(
        status_code=exc.http_status,
        content=ValidateResponse.failure(exc.message).to_content(),
        headers=headers or None,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs the failure for debugging while returning a generic message; stack
    traces and exception text never reach the client.

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with status 500 and a generic envelope.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content=ValidateResponse.failure(INTERNAL_ERROR_MESSAGE).to_content(),
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
