"""Pydantic schemas for health check responses."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Literal

from pydantic import BaseModel, Field

HealthStatus = Literal["UP", "DEGRADED", "DOWN"]


class CheckDetail(BaseModel):
    """Status of one component inspected by the health check."""

    status: HealthStatus
    tracked_clients: int | None = Field(
        default=None, description="Clients currently held by the rate limiter."
    )
    sweeper: Literal["running", "stopped"] | None = Field(
        default=None, description="State of the idle-client sweeper task."
    )
    error: str | None = Field(
        default=None, description="Failure of the most recent idle-client sweep."
    )


class HealthCheckResponse(BaseModel):
    status: HealthStatus
    timestamp: datetime
    service: str
    version: str
    uptime_seconds: float = Field(..., description="Seconds since application startup.")
    details: Dict[str, CheckDetail] = Field(default_factory=dict)
