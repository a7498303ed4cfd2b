"""
TaskBoard Backend - Shared Response Schemas
===========================================

What:  Response models used by every route: the error envelope and the
       health report.
Who:   Referenced in route `responses=` declarations for OpenAPI docs and
       built by the global exception handlers in main.py.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "error": "invalid_credentials",
            "message": "Wrong login or password",
            "request_id": "550e8400-e29b-41d4-a716-446655440000"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Health check result for the service and its two backing stores."""
    status: str = Field(description="Overall service status: healthy or unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Postgres connectivity: connected, disconnected")
    session_storage: str = Field(description="Redis connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
