"""
EcoPlate Backend — Shared Response Schemas
===========================================

Error body returned by every exception handler:
    {
        "error": "not_found",
        "message": "Product not found",
        "details": {"resource": "Product", "resource_id": "12"},
        "request_id": "550e8400-e29b-41d4-a716-446655440000"
    }
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    """
    Returned by GET /health.

    status is "healthy", "degraded" (vision unavailable) or "unhealthy"
    (database unreachable).
    """
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    vision: str = Field(description="Gemini status: available, unavailable, not_configured, circuit_open")
    uptime_seconds: float = Field(description="Seconds since service started")
