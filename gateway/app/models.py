"""
Data Models Module

Pydantic models for gateway responses.

Models are organized by functional area:
- Health check models
- Diagnostic report models
- Error models
"""

from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel, Field


# ============================================================================
# Health Check Models
# ============================================================================

class HealthResponse(BaseModel):
    """Liveness response served without authentication."""
    status: str = Field(default="ok", description="Service health status")
    timestamp: str = Field(..., description="ISO-8601 UTC check timestamp")


# ============================================================================
# Diagnostic Models
# ============================================================================

class ProbeFailure(BaseModel):
    """A probe step that could not complete."""
    error: str = Field(..., description="Failure message")


class HealthProbeResult(BaseModel):
    """Backend /health answer, whatever its status code."""
    status: int = Field(..., description="HTTP status returned by the backend")
    body: str = Field(..., description="Raw response body")


class TerminalProbeResult(BaseModel):
    """Backend terminal answer to the synthetic echo command."""
    status: int = Field(..., description="HTTP status returned by the backend")
    contentType: Optional[str] = Field(None, description="Response content type")
    bodyLength: int = Field(..., description="Full body length in characters")
    bodyPreview: str = Field(..., description="Bounded prefix of the body")


class DiagnosticReport(BaseModel):
    """Outcome of one diagnostic probe run. Never contains the secret itself."""
    timestamp: str = Field(..., description="ISO-8601 UTC probe timestamp")
    tunnelUrl: str = Field(..., description="Backend address probed")
    sharedSecret: str = Field(..., description="Secret presence and length")
    health: Union[HealthProbeResult, ProbeFailure]
    terminal: Union[TerminalProbeResult, ProbeFailure]


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Error body returned when the backend cannot be reached."""
    error: str = Field(..., description="Human-readable error message")


# ============================================================================
# Helpers
# ============================================================================

def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
