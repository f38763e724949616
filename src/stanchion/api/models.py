"""
Pydantic models for Stanchion API requests and responses.
This module defines the request and response schemas used by the Stanchion API.
"""

from typing import Optional

from pydantic import (
    BaseModel,
    Field,
)

from stanchion.core.schema import CircuitStatus


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class MessageRequest(BaseModel):
    """Incoming user message."""

    message: str = Field(..., min_length=1, description="User message for Stanchion")
    session_id: Optional[str] = Field(None, description="Session ID for conversation context")
    user_id: Optional[str] = Field(None, description="Caller identity passed to tools")


class MessageResponse(BaseModel):
    """API response returned to the caller."""

    reply: str
    session_id: str
    is_error: bool = False
    tool_iterations: int = 0


class HealthResponse(BaseModel):
    """Liveness payload including the backend circuit breaker."""

    status: str
    backend: CircuitStatus
