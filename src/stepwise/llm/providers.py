"""
Completion providers for stepwise.

This module is the only place that *directly* talks to a text-generation service.  Everything else
(agent loop, planner, tools, memory) stays model-agnostic and depends on
:class:`BaseCompletionProvider` only.

Two back-ends ship out of the box:

1. **OpenAI-compatible** chat-completions servers (OpenAI, llama.cpp, vLLM, ...).
2. **Echo**, an offline provider for development and tests.

Additional providers can be added by subclassing :class:`BaseCompletionProvider` and registering
via :func:`register_provider`.
"""

import asyncio
import json
import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    AsyncIterator,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Type,
)

import httpx

from stepwise.config import (
    Settings,
    settings,
)
from stepwise.core.cancellation import (
    CancellationToken,
    raise_if_cancelled,
    run_cancellable,
)
from stepwise.core.errors import CompletionError
from stepwise.core.schema import (
    CompletionResult,
    Message,
    Role,
    TokenUsage,
)
from stepwise.llm.sse import TokenStream

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_PROVIDER_REGISTRY: dict[str, Type["BaseCompletionProvider"]] = {}


def register_provider(name: str) -> Callable:
    """Decorator to register a provider class under *name*."""

    def wrapper(cls: Type["BaseCompletionProvider"]) -> Type["BaseCompletionProvider"]:
        _PROVIDER_REGISTRY[name] = cls
        return cls

    return wrapper


def load_provider(name: str | None = None, config: Settings | None = None) -> "BaseCompletionProvider":
    """
    Factory that returns an instantiated provider.

    Fallback order:
    1. *name* arg
    2. ``settings.PROVIDER`` env option
    """
    config = config or settings
    target = name or config.PROVIDER
    cls = _PROVIDER_REGISTRY.get(target.lower())
    if cls is None:
        raise ValueError(f"Completion provider '{target}' is not registered.")
    return cls.from_settings(config)


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseCompletionProvider(ABC):
    """Abstract text-generation back-end."""

    name: str = "base"

    @classmethod
    def from_settings(cls, config: Settings) -> "BaseCompletionProvider":
        """Build the provider from application settings."""
        return cls()

    @abstractmethod
    async def complete(
        self, history: Sequence[Message], cancel: Optional[CancellationToken] = None
    ) -> CompletionResult:
        """Return a single completion for *history*."""

    @abstractmethod
    async def stream(
        self, history: Sequence[Message], cancel: Optional[CancellationToken] = None
    ) -> TokenStream:
        """Start a streamed completion and return its tokens."""

    async def aclose(self) -> None:
        """Release any pooled connections."""


# ---------------------------------------------------------------------------
# Concrete providers
# ---------------------------------------------------------------------------
# The chat-completions "tool" role requires a tool_call_id; tool output is replayed as assistant
# context instead.
_WIRE_ROLES: Dict[Role, str] = {
    Role.SYSTEM: "system",
    Role.USER: "user",
    Role.ASSISTANT: "assistant",
    Role.TOOL: "assistant",
}


@register_provider("openai-compatible")
class OpenAICompatibleProvider(BaseCompletionProvider):
    """Chat-completions client over httpx, with server-sent-event streaming."""

    name = "openai-compatible"

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: str | None = None,
        max_tokens: int = 512,
        temperature: float = 0.2,
        top_p: float = 0.9,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._top_p = top_p

        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"), headers=headers, timeout=timeout, transport=transport
        )

    @classmethod
    def from_settings(cls, config: Settings) -> "OpenAICompatibleProvider":
        return cls(
            base_url=config.LLM_BASE_URL,
            model=config.LLM_MODEL,
            api_key=config.LLM_API_KEY,
            max_tokens=config.LLM_MAX_TOKENS,
            temperature=config.LLM_TEMPERATURE,
            top_p=config.LLM_TOP_P,
            timeout=config.LLM_REQUEST_TIMEOUT_SECONDS,
        )

    def _payload(self, history: Sequence[Message], stream: bool) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"role": _WIRE_ROLES[m.role], "content": m.content} for m in history],
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
            "top_p": self._top_p,
            "stream": stream,
        }

    async def complete(
        self, history: Sequence[Message], cancel: Optional[CancellationToken] = None
    ) -> CompletionResult:
        try:
            resp = await run_cancellable(
                self._client.post("/chat/completions", json=self._payload(history, stream=False)),
                cancel,
            )
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPError as exc:
            raise CompletionError(f"Completion request failed: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise CompletionError("Completion response is not JSON") from exc

        if not isinstance(body, dict):
            raise CompletionError("Completion response has an unexpected shape")
        choices: List[Dict[str, Any]] = body.get("choices") or [{}]
        first = choices[0] if isinstance(choices[0], dict) else {}
        text = (first.get("message") or {}).get("content") or ""

        usage = None
        if isinstance(body.get("usage"), dict):
            usage = TokenUsage(
                prompt_tokens=body["usage"].get("prompt_tokens"),
                completion_tokens=body["usage"].get("completion_tokens"),
            )
        logger.debug("Completion finished (%s tokens)", usage.total_tokens if usage else "n/a")

        return CompletionResult(
            text=text,
            usage=usage,
            provider_metadata={
                "provider": self.name,
                "finish_reason": first.get("finish_reason") or "",
            },
        )

    async def stream(
        self, history: Sequence[Message], cancel: Optional[CancellationToken] = None
    ) -> TokenStream:
        request = self._client.build_request(
            "POST", "/chat/completions", json=self._payload(history, stream=True)
        )
        try:
            resp = await run_cancellable(self._client.send(request, stream=True), cancel)
        except httpx.HTTPError as exc:
            raise CompletionError(f"Streaming request failed: {exc}") from exc

        if resp.is_error:
            await resp.aread()
            await resp.aclose()
            raise CompletionError(f"Streaming request failed with HTTP {resp.status_code}")
        return TokenStream(resp, cancel)

    async def aclose(self) -> None:
        await self._client.aclose()


@register_provider("echo")
class EchoProvider(BaseCompletionProvider):
    """Offline provider that repeats the last message back."""

    name = "echo"

    def __init__(self, delay: float = 0.0) -> None:
        self._delay = delay

    @staticmethod
    def _last(history: Sequence[Message]) -> str:
        return history[-1].content if history else "(empty)"

    async def complete(
        self, history: Sequence[Message], cancel: Optional[CancellationToken] = None
    ) -> CompletionResult:
        raise_if_cancelled(cancel)
        return CompletionResult(text=f"[echo] {self._last(history)}")

    async def stream(
        self, history: Sequence[Message], cancel: Optional[CancellationToken] = None
    ) -> TokenStream:
        text = f"[echo-stream] {self._last(history)}"

        async def lines() -> AsyncIterator[bytes]:
            for ch in text:
                yield f"data: {json.dumps({'choices': [{'delta': {'content': ch}}]})}\n".encode()
                if self._delay:
                    await asyncio.sleep(self._delay)
            yield b"data: [DONE]\n"

        resp = httpx.Response(200, content=lines(), headers={"content-type": "text/event-stream"})
        return TokenStream(resp, cancel)
