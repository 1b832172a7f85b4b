"""
Schema definitions for planner <-> agent <-> tool messages.

These data models serve as the contract between the planner LLM, the orchestration loop, and
individual tools.  We keep them separate from runtime logic so they can be imported anywhere without
side-effects.
"""

from enum import Enum
from typing import (
    Any,
    Dict,
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)


class Role(str, Enum):
    """Author of a conversation message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class Message(BaseModel):
    """One immutable entry of a conversation."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    tool_name: Optional[str] = Field(None, description="Tool that produced a tool-authored message")


class PlanStep(BaseModel):
    """A tool invocation the planner wants the agent to execute."""

    model_config = ConfigDict(frozen=True)

    tool: str = Field("", description="Registered tool name or alias")
    input: str = Field("", description="Free-form text handed to the tool")


class Plan(BaseModel):
    """Ordered tool invocations plus the planner's explanation.

    A plan without steps is valid and means "answer directly".
    """

    model_config = ConfigDict(frozen=True)

    steps: List[PlanStep] = Field(default_factory=list)
    rationale: str = ""


class TokenUsage(BaseModel):
    """Token counts reported by a completion provider."""

    model_config = ConfigDict(frozen=True)

    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None

    @property
    def total_tokens(self) -> int:
        """Sum of prompt and completion tokens; missing counts are treated as zero."""
        return (self.prompt_tokens or 0) + (self.completion_tokens or 0)


class CompletionResult(BaseModel):
    """Text returned by a completion provider, plus optional diagnostics."""

    model_config = ConfigDict(frozen=True)

    text: str
    usage: Optional[TokenUsage] = None
    provider_metadata: Optional[Dict[str, Any]] = None


class ObservationStatus(str, Enum):
    """How a plan step ended."""

    OK = "ok"
    TOOL_ERROR = "tool_error"
    UNKNOWN_TOOL = "unknown_tool"


class StepObservation(BaseModel):
    """The text folded back into the conversation for one executed step."""

    model_config = ConfigDict(frozen=True)

    tool: str
    output: str
    status: ObservationStatus
    elapsed_ms: float = 0.0


class TurnResult(BaseModel):
    """Everything one orchestration turn produced (for logging / API callers)."""

    reply: str
    plan: Optional[Plan] = None
    observations: List[StepObservation] = Field(default_factory=list)
