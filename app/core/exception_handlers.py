"""Global exception handlers for consistent error responses.

Every error leaves the service in the same envelope the rate limiter uses
for throttled requests: ``{"code": <http status>, "message": <localized>}``.

Design:
- AppError subclasses → appropriate HTTP status (400, 500)
- HTTPException (404, 405, ...) → same status, catalog message
- Request validation failures → 400 naming the offending field
- Unexpected Exception → generic 500 (safety net)
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.errors import AppError, ConfigurationAppError
from app.core.i18n import localize_request
from app.core.logging import current_request_id

logger = logging.getLogger(__name__)

# Catalog keys for statuses raised by the framework itself
STATUS_MESSAGE_KEYS: dict[int, str] = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    429: "too_many_requests",
    500: "internal_server_error",
}


def error_response(
    status_code: int, message: str, headers: dict[str, str] | None = None
) -> JSONResponse:
    """Build the standard error envelope."""
    return JSONResponse(
        status_code=status_code,
        content={"code": status_code, "message": message},
        headers=headers,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors.

    ConfigurationAppError is a server fault (500); any other AppError is
    treated as a client fault (400). The message is looked up in the catalog
    by ``exc.code`` and falls back to ``exc.message``.
    """
    status_code = 500 if isinstance(exc, ConfigurationAppError) else 400

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_id": current_request_id(),
        },
    )

    values = (exc.details or {}).get("values")
    message = localize_request(request, exc.code, values, default=exc.message)
    return error_response(status_code, message)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Render framework HTTP errors (unknown route, wrong method, ...) in the envelope."""
    key = STATUS_MESSAGE_KEYS.get(exc.status_code)
    fallback = exc.detail if isinstance(exc.detail, str) else None
    if key is None:
        message = fallback or str(exc.status_code)
    else:
        message = localize_request(request, key, default=fallback)

    logger.info(
        "http_error_handled",
        extra={
            "status_code": exc.status_code,
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )
    return error_response(exc.status_code, message, headers=getattr(exc, "headers", None))


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return 400 with a message naming the first invalid field."""
    errors = exc.errors()
    if not errors:
        return error_response(400, localize_request(request, "bad_request"))

    first = errors[0]
    field = str(first.get("loc", ("",))[-1])
    key = "field_required" if first.get("type") == "missing" else "field_invalid"

    logger.info(
        "request_validation_failed",
        extra={
            "field": field,
            "error_type": first.get("type"),
            "error_count": len(errors),
            "request_path": request.url.path,
        },
    )
    return error_response(400, localize_request(request, key, {"field": field}))


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs the failure for debugging while returning a generic message; no
    exception text or stack trace reaches the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": current_request_id(),
        },
    )

    message = localize_request(
        request,
        "internal_server_error",
        default="An unexpected error occurred. Please try again later.",
    )
    return error_response(500, message)


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app.

    Order matters: specific handlers registered before the general fallback.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)
