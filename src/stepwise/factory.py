"""Wires stores, providers, planners and tools together from :mod:`stepwise.config`."""

import logging
from typing import List

from stepwise.agent.agent_loop import AgentExecutor
from stepwise.agent.planner import load_planner
from stepwise.config import Settings
from stepwise.llm.providers import load_provider
from stepwise.memory.memory_store import (
    ConversationStore,
    InMemoryConversationStore,
    JsonlConversationStore,
)
from stepwise.tools import (
    BaseTool,
    EchoTool,
    ToolRegistry,
)
from stepwise.tools.web_search import (
    SerpSearchTool,
    WebSearchTool,
)

logger = logging.getLogger(__name__)


def build_tools(config: Settings) -> ToolRegistry:
    """Register the built-in tools; SerpSearch only when an API key is configured."""
    tools: List[BaseTool] = [EchoTool(), WebSearchTool()]
    if config.SERPAPI_API_KEY:
        tools.append(SerpSearchTool(api_key=config.SERPAPI_API_KEY))
    else:
        logger.warning("SERPAPI_API_KEY not configured; SerpSearch resolves to WebSearch.")
    return ToolRegistry(tools)


def build_store(config: Settings) -> ConversationStore:
    if config.HISTORY_PATH:
        return JsonlConversationStore(config.HISTORY_PATH)
    return InMemoryConversationStore()


def build_executor(config: Settings) -> AgentExecutor:
    """Create a ready-to-use :class:`AgentExecutor` for *config*."""
    provider = load_provider(config=config)
    executor = AgentExecutor(
        store=build_store(config),
        planner=load_planner(config.PLANNER, provider),
        registry=build_tools(config),
        provider=provider,
        logger=logging.getLogger("stepwise.agent"),
    )
    logger.info("Agent ready (provider=%s, planner=%s)", provider.name, config.PLANNER)
    return executor
