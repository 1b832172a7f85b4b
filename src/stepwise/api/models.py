"""
Pydantic models for stepwise API requests and responses.
This module defines the request and response schemas used by the stepwise API.
"""

from typing import (
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)

from stepwise.core.schema import (
    Message,
    StepObservation,
)


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class SessionResponse(BaseModel):
    """Response with session information."""

    session_id: str


class MessageRequest(BaseModel):
    """Incoming user message."""

    message: str = Field(..., min_length=1, description="User message for the agent")
    session_id: Optional[str] = Field(None, description="Session ID for conversation context")


class MessageResponse(BaseModel):
    """API response returned to the caller."""

    reply: str
    session_id: str
    rationale: Optional[str] = None
    observations: List[StepObservation] = Field(default_factory=list)


class HistoryResponse(BaseModel):
    """All messages of one session, oldest first."""

    session_id: str
    messages: List[Message]
