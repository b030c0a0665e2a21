"""Rate limiting middleware.

This module wires the rate limiter registry into the HTTP layer. The registry
itself is created by the app factory and reached through
``request.app.state.rate_limiter``; nothing here holds module-level state.

Rate limiting strategy:
- Token bucket per client (``RATE_LIMIT_RATE`` tokens/s, ``RATE_LIMIT_BURST``
  capacity).
- Client key is the source IP of the connection, or the first
  ``X-Forwarded-For`` address when the service sits behind a trusted proxy.
- Every request is checked before routing; a denied request never reaches a
  handler.
"""

from __future__ import annotations

import logging

from fastapi import Request, Response, status

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.core.config import RateLimitSettings
from app.core.exception_handlers import error_response
from app.core.i18n import localize_request
from app.core.logging import hash_identifier

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


def get_client_key(request: Request, *, trust_forwarded_for: bool = False) -> str:
    """Build the limiter key for the current request.

    Args:
        request: Incoming request.
        trust_forwarded_for: Prefer the first ``X-Forwarded-For`` entry.

    Returns:
        Client IP address, or ``"unknown"`` when the server did not expose one.
    """

    if trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",", 1)[0].strip()
        if first_hop:
            return first_hop

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def _throttle_headers(result: RateLimitResult) -> dict[str, str]:
    return {
        "Retry-After": str(result.retry_after_seconds or 1),
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
    }


async def rate_limit_middleware(request: Request, call_next) -> Response:
    """Spend one token from the caller's bucket or answer 429.

    Denied requests get ``{"code": 429, "message": <localized>}`` and, when
    ``RATE_LIMIT_INCLUDE_HEADERS`` is on, Retry-After and X-RateLimit-*
    headers. Processing stops there: no downstream handler runs.
    """

    rl_settings: RateLimitSettings = request.app.state.settings.rate_limit
    if not rl_settings.enabled:
        return await call_next(request)

    limiter: AbstractRateLimiter = request.app.state.rate_limiter
    key = get_client_key(request, trust_forwarded_for=rl_settings.trust_forwarded_for)
    result = limiter.consume(key)

    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_hash": hash_identifier(key),
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        return await call_next(request)

    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_hash": hash_identifier(key),
            "limit": result.limit,
            "retry_after_s": result.retry_after_seconds,
            "path": request.url.path,
        },
    )

    headers = _throttle_headers(result) if rl_settings.include_headers else None
    return error_response(
        status.HTTP_429_TOO_MANY_REQUESTS,
        localize_request(request, "too_many_requests"),
        headers=headers,
    )
