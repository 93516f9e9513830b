"""
Pydantic models for multitool API requests and responses.
This module defines the request and response schemas used by the multitool API.
"""

from datetime import datetime
from typing import (
    Any,
    Dict,
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
    field_validator,
)

from multitool.agent.session import LoopState


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class SessionResponse(BaseModel):
    """Response with session information."""

    session_id: str
    state: LoopState
    turns: int = 0
    created_at: datetime


class MessageRequest(BaseModel):
    """Incoming user message."""

    message: str = Field(..., min_length=1, description="User message for the agent")
    session_id: Optional[str] = Field(None, description="Session ID for conversation context")

    @field_validator("message")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message must not be blank")
        return value.strip()


class MessageResponse(BaseModel):
    """Result of one agent loop invocation."""

    session_id: str
    state: LoopState
    reply: Optional[str] = None
    model_calls: int = 0
    tool_calls: int = 0
    events: List[Dict[str, Any]] = Field(default_factory=list)


class CancelResponse(BaseModel):
    """Whether a running loop was asked to stop."""

    session_id: str
    cancelled: bool


class ErrorResponse(BaseModel):
    """Body returned for domain errors."""

    detail: str
    kind: str
