"""Common schemas, error responses and WebSocket events."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response schema (RFC 7807 inspired)."""

    error: str = Field(..., description="Error code", examples=["SECTOR_NOT_FOUND"])
    message: str = Field(..., description="Human-readable error message")
    status: int = Field(..., description="HTTP status code")
    details: Optional[Dict[str, Any]] = Field(
        default=None, description="Additional error details"
    )

    model_config = {"json_schema_extra": {"example": {"error": "SECTOR_NOT_FOUND", "message": "Sector not found", "status": 404}}}


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Overall health status", examples=["healthy", "unhealthy"])
    version: str = Field(..., description="Application version")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    checks: Dict[str, bool] = Field(default_factory=dict, description="Individual service health checks")


class RefreshStatusResponse(BaseModel):
    """Whether a refresh is currently running."""

    in_progress: bool
    phase: str


class WSEventType(str, Enum):
    """WebSocket event types."""

    CONNECTED = "connected"
    PROGRESS = "progress"
    RESULT = "result"
    ERROR = "error"


class WSEvent(BaseModel):
    """WebSocket event payload."""

    type: WSEventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: Optional[Any] = None
    message: Optional[str] = None

    model_config = {"use_enum_values": True}
