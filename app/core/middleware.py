"""HTTP middleware for request ID propagation and access logging.

The request ID middleware:
- Accepts incoming X-Request-ID header or generates a UUID
- Stores request_id in contextvars for access throughout the request lifecycle
- Injects request_id into response headers for client-side tracking
- Measures total request duration and includes it in response headers
- Renders unhandled exceptions itself so 500 responses keep the request id

The access log middleware writes one ``http.request`` record per request,
skipping the liveness/readiness probes.

Usage:
    app.middleware("http")(access_log_middleware)
    app.middleware("http")(request_id_middleware)  # registered last = outermost
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from app.core.config import settings
from app.core.exception_handlers import general_exception_handler
from app.core.logging import bind_request_id, reset_request_id

logger = logging.getLogger("app.access")

ACCESS_LOG_SKIP_PATHS = frozenset({"/health/live", "/health/ready"})


def _request_id_header(request: Request) -> str:
    app_settings = getattr(request.app.state, "settings", None) or settings
    return app_settings.log.request_id_header


async def request_id_middleware(request: Request, call_next) -> Response:
    """HTTP middleware for request ID generation and propagation.

    If the client provides the request id header (``LOG_REQUEST_ID_HEADER``,
    default X-Request-ID), that value is used. Otherwise a new UUID is
    generated. The ID is echoed back in the response headers and stored in
    contextvars for log correlation.

    Side Effects:
        - Sets request_id in contextvars (accessible via current_request_id())
        - Restores the previous request_id context after request completes
        - Adds the request id header and X-Request-Duration-ms to the response
    """

    header_name = _request_id_header(request)
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    token = bind_request_id(request_id)
    start = time.perf_counter()
    try:
        try:
            response: Response = await call_next(request)
        except Exception as exc:
            # Rendered here so the 500 carries the bound request id
            response = await general_exception_handler(request, exc)
    finally:
        reset_request_id(token)

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


async def access_log_middleware(request: Request, call_next) -> Response:
    """Log method, path, status, latency and client address of each request."""

    if request.url.path in ACCESS_LOG_SKIP_PATHS:
        return await call_next(request)

    start = time.perf_counter()
    status_code = 500
    try:
        response: Response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        latency_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "http.request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "latency_ms": round(latency_ms, 2),
                "client_ip": request.client.host if request.client else None,
            },
        )
