"""Shared fakes for the agent tests."""

from typing import (
    List,
    Optional,
    Sequence,
)

import pytest

from stepwise.core.cancellation import CancellationToken
from stepwise.core.errors import ToolError
from stepwise.core.schema import (
    CompletionResult,
    Message,
)
from stepwise.llm.providers import BaseCompletionProvider
from stepwise.tools import BaseTool


class ScriptedProvider(BaseCompletionProvider):
    """Returns canned completions in order and records every request."""

    name = "scripted"

    def __init__(self, *replies: str) -> None:
        self.replies = list(replies)
        self.requests: List[List[Message]] = []

    async def complete(
        self, history: Sequence[Message], cancel: Optional[CancellationToken] = None
    ) -> CompletionResult:
        self.requests.append(list(history))
        return CompletionResult(text=self.replies.pop(0) if self.replies else "")

    async def stream(self, history, cancel=None):  # pragma: no cover - not used
        raise NotImplementedError


class UpperTool(BaseTool):
    name = "Upper"
    description = "Upper-case the input."

    def __init__(self) -> None:
        self.calls: List[str] = []

    async def execute(self, input: str, cancel: Optional[CancellationToken] = None) -> str:
        self.calls.append(input)
        return input.upper()


class BrokenTool(BaseTool):
    name = "Broken"
    description = "Always fails."

    async def execute(self, input: str, cancel: Optional[CancellationToken] = None) -> str:
        raise ToolError("backend offline")


@pytest.fixture
def upper_tool() -> UpperTool:
    return UpperTool()
