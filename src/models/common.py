"""
Common Pydantic models shared across API responses.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StrictBaseModel(BaseModel):
    """Base model that rejects unknown fields."""

    model_config = ConfigDict(extra="forbid")


class ErrorDetail(StrictBaseModel):
    """Error payload returned by every failing endpoint."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | None = Field(default=None, description="Additional context")
    path: str | None = Field(default=None, description="Request path")


class ErrorResponse(StrictBaseModel):
    """Envelope for error responses."""

    error: ErrorDetail


class HealthResponse(StrictBaseModel):
    """Health check response."""

    status: str = Field(..., description="healthy, degraded or unhealthy")
    version: str = Field(..., description="API version")
    services: dict[str, str] = Field(default_factory=dict, description="Per-service status")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Time of the check",
    )
