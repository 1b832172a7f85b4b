"""
Main orchestration loop for stepwise.

One call to :meth:`AgentExecutor.run_turn` handles one user turn::

    Received -> Planning -> Executing(i) -> Summarizing -> Completed
                       (any step) -> Failed

Every turn ends with exactly one assistant message in the conversation store, unless the caller
cancels it, in which case cancellation propagates and nothing is framed as an answer.
"""

from __future__ import annotations

import asyncio
import logging
from typing import (
    List,
    Optional,
    Sequence,
)

from stepwise.agent.planner import BasePlanner
from stepwise.agent.tool_executor import execute_step
from stepwise.core.cancellation import (
    CancellationToken,
    raise_if_cancelled,
)
from stepwise.core.errors import OperationCancelledError
from stepwise.core.schema import (
    Message,
    ObservationStatus,
    Plan,
    Role,
    StepObservation,
    TurnResult,
)
from stepwise.llm.providers import BaseCompletionProvider
from stepwise.memory.memory_store import ConversationStore
from stepwise.tools import ToolRegistry

NO_PLAN_REPLY = "I couldn't determine an action plan."
NO_TOOLS_REPLY = "No tools were executed."
FAILURE_REPLY = "Unexpected error occurred."

SUMMARY_PROMPT = """\
You are an AI assistant that uses external tools such as WebSearch, Calendar, and Drive.
When a tool result is provided, assume it contains real information from the outside world.

Never apologize or say you cannot access the internet; that has already been handled by the tools.
If the WebSearch tool returns a link, summarize or include it helpfully.
If you get bullet points, summarize them clearly and concisely.
Always provide a confident, factual answer based on tool data.
"""


class AgentExecutor:
    """Plan, run tools, and summarise their observations for one conversation turn."""

    def __init__(
        self,
        store: ConversationStore,
        planner: BasePlanner,
        registry: ToolRegistry,
        provider: BaseCompletionProvider,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._store = store
        self._planner = planner
        self._registry = registry
        self._provider = provider
        self._log = logger or logging.getLogger(__name__)

    @property
    def store(self) -> ConversationStore:
        return self._store

    @property
    def planner(self) -> BasePlanner:
        return self._planner

    @property
    def provider(self) -> BaseCompletionProvider:
        return self._provider

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def handle(
        self, session_id: str, user_input: str, cancel: Optional[CancellationToken] = None
    ) -> str:
        """Run one turn and return the assistant reply."""
        result = await self.run_turn(session_id, user_input, cancel)
        return result.reply

    async def run_turn(
        self, session_id: str, user_input: str, cancel: Optional[CancellationToken] = None
    ) -> TurnResult:
        """
        Run one turn and return the reply together with the plan and observations.

        Raises
        ------
        OperationCancelledError
            If *cancel* fires before the reply is produced.
        asyncio.CancelledError
            If the surrounding task is cancelled.
        """
        plan: Optional[Plan] = None
        observations: List[StepObservation] = []
        try:
            raise_if_cancelled(cancel)
            await self._store.append(session_id, Message(role=Role.USER, content=user_input))
            history = await self._store.load(session_id)

            raise_if_cancelled(cancel)
            plan = await self._planner.create_plan(history, self._registry, cancel)
            self._log.info("Plan created with %d steps", len(plan.steps))

            if not plan.steps:
                reply = NO_PLAN_REPLY
            else:
                observations = await self._execute(session_id, plan, cancel)
                reply = await self._summarize(history, observations, cancel)
        except (OperationCancelledError, asyncio.CancelledError):
            self._log.info("Turn cancelled for session %s", session_id)
            raise
        except Exception:  # pylint: disable=broad-except
            self._log.exception("Unhandled exception in AgentExecutor (session %s)", session_id)
            reply = FAILURE_REPLY

        if not await self._persist_reply(session_id, reply) and reply != FAILURE_REPLY:
            self._log.error("Turn failed for session %s: reply was not stored", session_id)
            reply = FAILURE_REPLY
            await self._persist_reply(session_id, reply)
        return TurnResult(reply=reply, plan=plan, observations=observations)

    async def _execute(
        self, session_id: str, plan: Plan, cancel: Optional[CancellationToken]
    ) -> List[StepObservation]:
        observations: List[StepObservation] = []
        for index, step in enumerate(plan.steps):
            raise_if_cancelled(cancel)
            if not step.tool.strip():
                self._log.warning("Skipping step %d without a tool name", index)
                continue

            observation = await execute_step(self._registry, step, cancel, self._log)
            observations.append(observation)
            if observation.status is not ObservationStatus.UNKNOWN_TOOL:
                # Persist the labelled result so later turns see it as context.
                message = Message(
                    role=Role.TOOL, content=observation.output, tool_name=observation.tool
                )
                await self._store.append(session_id, message)
        return observations

    async def _summarize(
        self,
        history: Sequence[Message],
        observations: Sequence[StepObservation],
        cancel: Optional[CancellationToken],
    ) -> str:
        if not observations:
            return NO_TOOLS_REPLY

        raise_if_cancelled(cancel)
        context = "\n\n".join(o.output for o in observations)
        messages = [
            *history,
            Message(role=Role.SYSTEM, content=SUMMARY_PROMPT),
            Message(role=Role.USER, content=context),
        ]
        response = await self._provider.complete(messages, cancel)
        return response.text

    async def _persist_reply(self, session_id: str, reply: str) -> bool:
        try:
            await self._store.append(session_id, Message(role=Role.ASSISTANT, content=reply))
        except Exception:  # pylint: disable=broad-except
            self._log.exception("Could not persist assistant reply (session %s)", session_id)
            return False
        return True
