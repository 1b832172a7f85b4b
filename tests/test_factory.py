"""Tests for wiring the executor from settings, and for the interactive shell."""

from pathlib import Path

import pytest

from stepwise.agent.planner import NaivePlanner
from stepwise.client import cli
from stepwise.config import Settings
from stepwise.factory import (
    build_executor,
    build_store,
    build_tools,
)
from stepwise.llm.providers import EchoProvider
from stepwise.memory.memory_store import (
    InMemoryConversationStore,
    JsonlConversationStore,
)
from stepwise.tools.web_search import (
    SerpSearchTool,
    WebSearchTool,
)


def test_build_tools_without_serpapi_key_aliases_websearch() -> None:
    registry = build_tools(Settings(SERPAPI_API_KEY=None))

    assert isinstance(registry.try_get("serpsearch"), WebSearchTool)
    assert registry.try_get("echo") is not None


def test_build_tools_with_serpapi_key() -> None:
    registry = build_tools(Settings(SERPAPI_API_KEY="key"))

    assert isinstance(registry.try_get("SerpSearch"), SerpSearchTool)
    assert isinstance(registry.try_get("google"), WebSearchTool)


def test_build_store(tmp_path: Path) -> None:
    assert isinstance(build_store(Settings(HISTORY_PATH=None)), InMemoryConversationStore)
    store = build_store(Settings(HISTORY_PATH=str(tmp_path / "h.jsonl")))
    assert isinstance(store, JsonlConversationStore)


def test_build_executor_uses_configured_components() -> None:
    executor = build_executor(Settings(PROVIDER="echo", PLANNER="naive", HISTORY_PATH=None))

    assert isinstance(executor.provider, EchoProvider)
    assert isinstance(executor.planner, NaivePlanner)
    assert len(executor.registry) >= 2


async def test_cli_session_runs_turns_until_exit(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    executor = build_executor(Settings(PROVIDER="echo", PLANNER="naive", HISTORY_PATH=None))
    inputs = iter(["hello", "", "exit"])
    monkeypatch.setattr(cli, "get_user_message", lambda: (next(inputs), True))

    await cli.run_session(executor, session_id="shell")

    out = capsys.readouterr().out
    assert "I couldn't determine an action plan." in out
    assert [m.content for m in await executor.store.load("shell")] == [
        "hello",
        "I couldn't determine an action plan.",
    ]
