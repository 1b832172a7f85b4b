"""
Decoder for OpenAI-style server-sent token streams.

The wire format is line based::

    data: {"choices": [{"delta": {"content": "Hel"}}]}
    data: {"choices": [{"delta": {"content": "lo"}}]}
    data: [DONE]

Lines without the ``data:`` prefix are ignored, ``[DONE]`` ends the stream, and a payload that
cannot be decoded is skipped rather than failing the whole response.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import (
    Any,
    AsyncIterator,
    NamedTuple,
    Optional,
)

import httpx

from stepwise.core.cancellation import (
    CancellationToken,
    raise_if_cancelled,
)

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_MARKER = "[DONE]"


class SseKind(str, Enum):
    IGNORED = "ignored"
    DONE = "done"
    TOKEN = "token"
    MALFORMED = "malformed"


class SseLine(NamedTuple):
    kind: SseKind
    text: str = ""


def _delta_content(payload: Any) -> Optional[str]:
    """Return ``choices[0].delta.content`` if the payload has that shape."""
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) else None


def parse_sse_line(line: str) -> SseLine:
    """Classify one line of an event stream."""
    if not line.startswith(DATA_PREFIX):
        return SseLine(SseKind.IGNORED)

    payload = line[len(DATA_PREFIX) :].strip()
    if payload == DONE_MARKER:
        return SseLine(SseKind.DONE)

    try:
        content = _delta_content(json.loads(payload))
    except ValueError:
        return SseLine(SseKind.MALFORMED)
    if content is None:
        # Valid JSON without text (role-only deltas, finish_reason chunks).
        return SseLine(SseKind.IGNORED)
    return SseLine(SseKind.TOKEN, content)


async def decode_event_stream(
    lines: AsyncIterator[str], cancel: Optional[CancellationToken] = None
) -> AsyncIterator[str]:
    """
    Lazily turn event-stream *lines* into text tokens.

    Stops at ``[DONE]`` or when *lines* is exhausted.  *cancel* is checked before every read; once
    it fires no further line is requested and ``OperationCancelledError`` is raised.
    """
    iterator = lines.__aiter__()
    while True:
        raise_if_cancelled(cancel)
        try:
            line = await iterator.__anext__()
        except StopAsyncIteration:
            return

        parsed = parse_sse_line(line)
        if parsed.kind is SseKind.DONE:
            return
        if parsed.kind is SseKind.MALFORMED:
            logger.debug("Skipping malformed stream chunk: %r", line)
        elif parsed.kind is SseKind.TOKEN:
            yield parsed.text


class TokenStream:
    """
    Tokens of one streamed completion, tied to the HTTP response that carries them.

    Use it as an async context manager (or call :meth:`aclose`) so the connection is released
    even when iteration stops early::

        async with await provider.stream(history) as tokens:
            async for token in tokens:
                ...

    Normal completion, ``[DONE]``, cancellation and errors all release the response as well.
    """

    def __init__(
        self,
        response: httpx.Response,
        cancel: Optional[CancellationToken] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._response = response
        self._client = client  # owned client, closed together with the response
        self._cancel = cancel
        self._closed = False
        self._started = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def _tokens(self) -> AsyncIterator[str]:
        try:
            async for token in decode_event_stream(self._response.aiter_lines(), self._cancel):
                yield token
        finally:
            await self.aclose()

    def __aiter__(self) -> AsyncIterator[str]:
        if self._closed or self._started:
            return _empty()
        self._started = True
        return self._tokens()

    async def aclose(self) -> None:
        """Release the underlying response.  Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._response.aclose()
        finally:
            if self._client is not None:
                await self._client.aclose()

    async def __aenter__(self) -> "TokenStream":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


async def _empty() -> AsyncIterator[str]:
    return
    yield  # pragma: no cover
