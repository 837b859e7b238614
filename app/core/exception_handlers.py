"""Global exception handlers for consistent error responses.

Every error response has the same envelope as the routes' own failures:

    {"success": false, "error": "<message>", "code": "<CODE>", "request_id": "..."}

Design:
- ValidationAppError → 400, AuthenticationAppError → 401
- RateLimitExceededAppError → 429 with Retry-After / X-RateLimit-* headers
- Framework HTTP errors (404, 405) → same envelope, original status
- Unexpected Exception → generic 500 (safety net, nothing leaked)
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.errors import (
    AppError,
    AuthenticationAppError,
    RateLimitExceededAppError,
)
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)


def error_body(code: str, message: str, details: dict | None = None) -> dict:
    body = {
        "success": False,
        "error": message,
        "code": code,
        "request_id": get_request_id(),
    }
    if details:
        body["details"] = details
    return body


def _status_for(exc: AppError) -> int:
    if isinstance(exc, RateLimitExceededAppError):
        return 429
    if isinstance(exc, AuthenticationAppError):
        return 401
    # ValidationAppError and any other domain error are client faults
    return 400


def _rate_limit_headers(exc: RateLimitExceededAppError) -> dict[str, str]:
    if not settings.app.rate_limit_include_headers:
        return {}

    headers = {"Retry-After": str(exc.retry_after)}
    if exc.limit is not None:
        headers["X-RateLimit-Limit"] = str(exc.limit)
        headers["X-RateLimit-Remaining"] = "0"
    if exc.blocked_until is not None:
        headers["X-RateLimit-Reset"] = str(int(exc.blocked_until))
    return headers


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Translate domain errors into JSON responses.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with the matching status code and error envelope.
    """
    status_code = _status_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "status_code": status_code,
            "request_path": request.url.path,
            "has_details": bool(exc.details),
        },
    )

    headers = None
    if isinstance(exc, RateLimitExceededAppError):
        headers = _rate_limit_headers(exc) or None

    return JSONResponse(
        status_code=status_code,
        content=error_body(exc.code, exc.message, dict(exc.details) if exc.details else None),
        headers=headers,
    )


_HTTP_ERROR_CODES = {
    404: ("NOT_FOUND", "Not found"),
    405: ("METHOD_NOT_ALLOWED", "Method not allowed"),
}


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap framework HTTP errors (unknown path, wrong method) in the error envelope."""
    code, message = _HTTP_ERROR_CODES.get(
        exc.status_code,
        (f"HTTP_{exc.status_code}", exc.detail if isinstance(exc.detail, str) else "Request failed"),
    )

    logger.info(
        "http_error_handled",
        extra={
            "status_code": exc.status_code,
            "error_code": code,
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(code, message),
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors.

    Logs the failure for debugging while returning a generic message, with
    no stack trace sent to the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content=error_body(
            "INTERNAL_ERROR",
            "Internal server error. Please try again later.",
        ),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app.

    Example:
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)
