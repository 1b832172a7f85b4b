"""Web search tools backed by public HTTP APIs."""

import logging
from typing import (
    Any,
    Dict,
    List,
    Optional,
)
from urllib.parse import quote_plus

import httpx

from stepwise.core.cancellation import (
    CancellationToken,
    raise_if_cancelled,
)
from stepwise.core.errors import ToolError
from stepwise.tools import BaseTool

logger = logging.getLogger(__name__)

_MAX_RESULTS = 5


def _bullets(header: str, items: List[str]) -> str:
    return header + "\n• " + "\n• ".join(items[:_MAX_RESULTS])


def _json_object(resp: httpx.Response) -> Dict[str, Any]:
    data = resp.json()
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


class WebSearchTool(BaseTool):
    """DuckDuckGo instant-answer search.  Failures are reported as text, never raised."""

    name = "WebSearch"
    description = (
        "Searches the web for information. Use this tool whenever the user asks for recent or "
        "factual data."
    )
    endpoint = "https://api.duckduckgo.com/"

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 30.0) -> None:
        self._client = client
        self._timeout = timeout

    async def execute(self, input: str, cancel: Optional[CancellationToken] = None) -> str:
        raise_if_cancelled(cancel)
        link = f"https://duckduckgo.com/?q={quote_plus(input)}"
        params = {"q": input, "format": "json", "no_html": "1", "skip_disambig": "1"}

        try:
            data = await self._get_json(params)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("WebSearch request failed: %s", exc)
            return f"WebSearch error: {exc}. Open: {link}"

        results: List[str] = []
        abstract = data.get("AbstractText")
        if isinstance(abstract, str) and abstract.strip():
            results.append(abstract)
        for topic in data.get("RelatedTopics") or []:
            text = topic.get("Text") if isinstance(topic, dict) else None
            if isinstance(text, str) and text.strip():
                results.append(text)

        if results:
            return _bullets(f"Top web results for '{input}':", results)
        return f"I couldn't extract snippets, but here's a direct search link: {link}"

    async def _get_json(self, params: Dict[str, str]) -> Dict[str, Any]:
        if self._client is not None:
            resp = await self._client.get(self.endpoint, params=params)
            resp.raise_for_status()
            return _json_object(resp)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.get(self.endpoint, params=params)
            resp.raise_for_status()
            return _json_object(resp)


class SerpSearchTool(BaseTool):
    """Google results through SerpApi."""

    name = "SerpSearch"
    description = "Search the web via SerpApi (Google) for global and regional results."
    endpoint = "https://serpapi.com/search.json"

    def __init__(
        self,
        api_key: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        country: str | None = None,
    ) -> None:
        self._api_key = api_key
        self._client = client
        self._timeout = timeout
        self._country = country

    async def execute(self, input: str, cancel: Optional[CancellationToken] = None) -> str:
        raise_if_cancelled(cancel)
        params = {"engine": "google", "q": input, "api_key": self._api_key, "num": str(_MAX_RESULTS)}
        if self._country:
            params["gl"] = self._country

        try:
            if self._client is not None:
                resp = await self._client.get(self.endpoint, params=params)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.get(self.endpoint, params=params)
            resp.raise_for_status()
            data = _json_object(resp)
        except (httpx.HTTPError, ValueError) as exc:
            raise ToolError(f"SerpSearch failed: {exc}") from exc

        results = [
            f"{item['title']} — {item['link']}"
            for item in data.get("organic_results") or []
            if isinstance(item, dict) and item.get("title") and item.get("link")
        ]
        if not results:
            return f"No good results found. See: https://serpapi.com/search?q={quote_plus(input)}"
        return _bullets("Top results:", results)
