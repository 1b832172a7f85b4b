"""Interactive shell that runs agent turns in-process."""

from __future__ import annotations

import asyncio
import logging
import uuid
from enum import Enum
from typing import (
    Any,
    Tuple,
)

from stepwise.agent.agent_loop import AgentExecutor
from stepwise.config import settings
from stepwise.core.cancellation import CancellationToken
from stepwise.core.errors import OperationCancelledError
from stepwise.factory import build_executor

logger = logging.getLogger(__name__)

_RESET = "\033[0m"


class AnsiColors(str, Enum):
    """ANSI color codes for terminal output."""

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[33m"
    BLUE = "\033[94m"


def colored_print(text: str, color: AnsiColors, **kwargs: Any) -> None:
    """Print *text* in *color*; extra keyword arguments go to :func:`print`."""
    print(f"{color.value}{text}{_RESET}", **kwargs)


def get_user_message() -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    try:
        user_input = input().strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


async def run_session(executor: AgentExecutor, session_id: str | None = None) -> None:
    """Read user messages until 'exit' and print the agent's replies."""
    session_id = session_id or str(uuid.uuid4())
    colored_print("stepwise shell - type 'exit' to quit.", AnsiColors.YELLOW)

    while True:
        colored_print("\nYou: ", AnsiColors.BLUE, end="")
        user_msg, ok = await asyncio.to_thread(get_user_message)
        if not ok or user_msg.lower() in {"exit", "quit"}:
            break
        if not user_msg:
            continue

        cancel = (
            CancellationToken.with_timeout(settings.TURN_TIMEOUT_SECONDS)
            if settings.TURN_TIMEOUT_SECONDS
            else None
        )
        try:
            reply = await executor.handle(session_id, user_msg, cancel)
        except OperationCancelledError as exc:
            colored_print(f"Turn cancelled: {exc}", AnsiColors.RED)
            continue
        colored_print(f"Agent: {reply}", AnsiColors.GREEN)


def run_cli() -> None:
    """Run the interactive shell with an executor built from settings."""
    executor = build_executor(settings)
    asyncio.run(run_session(executor))
