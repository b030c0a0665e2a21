"""Pydantic schema for error responses."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Envelope returned by every failing request, including throttled ones."""

    code: int = Field(..., description="HTTP status code of the response.")
    message: str = Field(
        ...,
        description="Display message localized according to Accept-Language.",
    )
