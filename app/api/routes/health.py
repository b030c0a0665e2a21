from __future__ import annotations

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.schemas.health import CheckDetail, HealthCheckResponse

router = APIRouter(tags=["Health"])


def _rate_limiter_detail(request: Request) -> CheckDetail:
    state = request.app.state
    sweeper = state.rate_limit_sweeper
    enabled = state.settings.rate_limit.enabled

    if enabled and not sweeper.running:
        status = "DOWN"
    elif sweeper.last_error:
        status = "DEGRADED"
    else:
        status = "UP"

    return CheckDetail(
        status=status,
        tracked_clients=len(state.rate_limiter),
        sweeper="running" if sweeper.running else "stopped",
        error=sweeper.last_error,
    )


def _build_response(
    request: Request, *, liveness_only: bool = False, readiness_only: bool = False
) -> JSONResponse:
    state = request.app.state
    response = HealthCheckResponse(
        status="UP",
        timestamp=datetime.now(timezone.utc),
        service=state.settings.app.service_name,
        version=state.settings.app.version,
        uptime_seconds=round(time.monotonic() - state.started_at, 3),
    )

    if not liveness_only:
        detail = _rate_limiter_detail(request)
        response.details["rate_limiter"] = detail
        if detail.status == "DOWN":
            response.status = "DOWN" if readiness_only else "DEGRADED"
        elif detail.status == "DEGRADED":
            response.status = "DEGRADED"

    status_code = 503 if response.status == "DOWN" else 200
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))


@router.get("/health", response_model=HealthCheckResponse)
def health_check(request: Request) -> JSONResponse:
    """Health check endpoint.

    Reports service metadata plus the rate limiter state. A stopped sweeper
    or a failed last sweep marks the service DEGRADED but still answers 200.
    """

    return _build_response(request)


@router.get("/health/live", response_model=HealthCheckResponse)
def liveness_check(request: Request) -> JSONResponse:
    """Liveness probe: the process is up and serving requests."""

    return _build_response(request, liveness_only=True)


@router.get(
    "/health/ready",
    response_model=HealthCheckResponse,
    responses={503: {"model": HealthCheckResponse}},
)
def readiness_check(request: Request) -> JSONResponse:
    """Readiness probe: 503 while rate limiting is enabled but not being swept.

    A failed last sweep reports DEGRADED with 200; the loop keeps retrying.
    """

    return _build_response(request, readiness_only=True)
