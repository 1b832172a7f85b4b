"""Tests for the HTTP search tools against a mocked transport."""

import httpx
import pytest

from stepwise.core.errors import ToolError
from stepwise.tools.web_search import (
    SerpSearchTool,
    WebSearchTool,
)


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_websearch_collects_abstract_and_topics() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["q"] == "python asyncio"
        assert request.url.params["format"] == "json"
        return httpx.Response(
            200,
            json={
                "AbstractText": "asyncio is a library.",
                "RelatedTopics": [{"Text": f"topic {i}"} for i in range(10)] + [{"Name": "group"}],
            },
        )

    result = await WebSearchTool(client=mock_client(handler)).execute("python asyncio")

    lines = result.splitlines()
    assert lines[0] == "Top web results for 'python asyncio':"
    assert lines[1:] == ["• asyncio is a library.", "• topic 0", "• topic 1", "• topic 2", "• topic 3"]


async def test_websearch_without_snippets_returns_link() -> None:
    tool = WebSearchTool(client=mock_client(lambda request: httpx.Response(200, json={})))

    result = await tool.execute("obscure thing")

    assert result.endswith("https://duckduckgo.com/?q=obscure+thing")


async def test_websearch_reports_errors_as_text() -> None:
    tool = WebSearchTool(client=mock_client(lambda request: httpx.Response(500)))

    result = await tool.execute("anything")

    assert result.startswith("WebSearch error:")
    assert "duckduckgo.com/?q=anything" in result


async def test_serpsearch_formats_organic_results() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["api_key"] == "k"
        assert request.url.params["gl"] == "bd"
        return httpx.Response(
            200,
            json={
                "organic_results": [
                    {"title": "Dhaka weather", "link": "https://example.com/w"},
                    {"title": "no link"},
                ]
            },
        )

    tool = SerpSearchTool(api_key="k", client=mock_client(handler), country="bd")

    assert await tool.execute("weather") == "Top results:\n• Dhaka weather — https://example.com/w"


async def test_serpsearch_without_results() -> None:
    tool = SerpSearchTool(api_key="k", client=mock_client(lambda r: httpx.Response(200, json={})))

    assert (await tool.execute("a b")).startswith("No good results found.")


async def test_serpsearch_raises_tool_error_on_http_failure() -> None:
    tool = SerpSearchTool(api_key="bad", client=mock_client(lambda r: httpx.Response(401)))

    with pytest.raises(ToolError):
        await tool.execute("weather")


async def test_websearch_reports_non_object_body_as_text() -> None:
    tool = WebSearchTool(client=mock_client(lambda request: httpx.Response(200, json=[])))

    result = await tool.execute("anything")

    assert result.startswith("WebSearch error: expected a JSON object, got list.")
    assert result.endswith("Open: https://duckduckgo.com/?q=anything")


async def test_serpsearch_raises_tool_error_on_non_object_body() -> None:
    tool = SerpSearchTool(api_key="k", client=mock_client(lambda r: httpx.Response(200, json=["x"])))

    with pytest.raises(ToolError, match="expected a JSON object"):
        await tool.execute("weather")
