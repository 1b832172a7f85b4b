"""
Planner interface for stepwise.

A planner turns the conversation so far plus the tool inventory into a :class:`Plan`.  The LLM
planner delegates text generation to a completion provider and relies on the plan parser to
recover a plan from whatever the model returns, so it never fails on malformed output.
"""

import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Callable,
    ClassVar,
    Dict,
    List,
    Optional,
    Sequence,
    Type,
)

from stepwise.agent.plan_parser import parse_plan
from stepwise.core.cancellation import CancellationToken
from stepwise.core.schema import (
    Message,
    Plan,
    Role,
)
from stepwise.llm.providers import BaseCompletionProvider
from stepwise.tools import ToolRegistry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_PLANNER_REGISTRY: Dict[str, Type["BasePlanner"]] = {}


def register_planner(name: str) -> Callable:
    """Decorator to register a planner class under *name*."""

    def wrapper(cls: Type["BasePlanner"]) -> Type["BasePlanner"]:
        _PLANNER_REGISTRY[name] = cls
        return cls

    return wrapper


def load_planner(name: str, provider: BaseCompletionProvider) -> "BasePlanner":
    """Factory that returns an instantiated planner bound to *provider*."""
    cls = _PLANNER_REGISTRY.get(name.lower())
    if cls is None:
        raise ValueError(f"Planner '{name}' is not registered.")
    return cls(provider)


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BasePlanner(ABC):
    """Abstract planner that converts conversation history -> plan."""

    def __init__(self, provider: Optional[BaseCompletionProvider] = None) -> None:
        self._provider = provider

    @abstractmethod
    async def create_plan(
        self,
        history: Sequence[Message],
        registry: ToolRegistry,
        cancel: Optional[CancellationToken] = None,
    ) -> Plan:
        """Return the plan for the latest user message in *history*."""


# ---------------------------------------------------------------------------
# Concrete planners
# ---------------------------------------------------------------------------
@register_planner("llm")
class LLMPlanner(BasePlanner):
    """Ask the completion provider for a JSON plan."""

    SYSTEM_PROMPT: ClassVar[
        str
    ] = """\
You are a planning assistant. Produce a SINGLE JSON object ONLY, no commentary.
Output strictly one object that matches this schema:
{
  "rationale": "string",
  "steps": [ { "tool": "ToolName", "input": "string" } ]
}
Use an empty "steps" list when no tool is needed.
Do not write any explanations or extra text before or after the JSON.
"""

    # The model has no native tool role; tool results are replayed as assistant context.
    _ROLE_MAP: ClassVar[Dict[Role, Role]] = {
        Role.SYSTEM: Role.SYSTEM,
        Role.USER: Role.USER,
        Role.ASSISTANT: Role.ASSISTANT,
        Role.TOOL: Role.ASSISTANT,
    }

    def __init__(self, provider: BaseCompletionProvider) -> None:
        super().__init__(provider)
        self._provider: BaseCompletionProvider = provider

    def build_messages(self, history: Sequence[Message], registry: ToolRegistry) -> List[Message]:
        """Assemble the planning conversation sent to the model."""
        messages = [Message(role=Role.SYSTEM, content=self.SYSTEM_PROMPT)]
        messages.extend(Message(role=self._ROLE_MAP[m.role], content=m.content) for m in history)

        tool_list = "\n".join(f"- {t.name}: {t.description}" for t in registry.all())
        messages.append(
            Message(
                role=Role.USER,
                content=f"Available tools:\n{tool_list}\n\nReturn only JSON as specified.",
            )
        )
        return messages

    async def create_plan(
        self,
        history: Sequence[Message],
        registry: ToolRegistry,
        cancel: Optional[CancellationToken] = None,
    ) -> Plan:
        response = await self._provider.complete(self.build_messages(history, registry), cancel)
        logger.debug("Planner response: %s", response.text)

        plan, outcome = parse_plan(response.text.strip())
        logger.info("Plan %s with %d steps: %s", outcome.value, len(plan.steps), plan.rationale)
        return plan


@register_planner("naive")
class NaivePlanner(BasePlanner):
    """Baseline planner that never uses tools."""

    RATIONALE = "Baseline planner: no tools used; answer directly via the model."

    async def create_plan(
        self,
        history: Sequence[Message],
        registry: ToolRegistry,
        cancel: Optional[CancellationToken] = None,
    ) -> Plan:
        return Plan(steps=[], rationale=self.RATIONALE)
