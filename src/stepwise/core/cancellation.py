"""
Cooperative cancellation for long-running agent work.

A :class:`CancellationToken` is created by the top-level caller and threaded through the planner,
tools, completion providers and the streaming decoder.  Each of them checks it at its own
suspension points (before a step, before a network read) and stops by raising
:class:`~stepwise.core.errors.OperationCancelledError`.
"""

from __future__ import annotations

import asyncio
import time
from typing import (
    Awaitable,
    Optional,
    TypeVar,
)

from stepwise.core.errors import OperationCancelledError

T = TypeVar("T")


class CancellationToken:
    """A one-shot cancellation flag with an optional deadline."""

    def __init__(self, deadline: Optional[float] = None) -> None:
        self._cancelled = False
        self._reason = "operation cancelled"
        self._deadline = deadline  # time.monotonic() value
        self._event: Optional[asyncio.Event] = None

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancellationToken":
        """Return a token that counts as cancelled once *seconds* have elapsed."""
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self, reason: str = "operation cancelled") -> None:
        """Signal cancellation.  Calling it more than once keeps the first reason."""
        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason
        if self._event is not None:
            self._event.set()

    @property
    def cancelled(self) -> bool:
        if not self._cancelled and self._deadline is not None and time.monotonic() >= self._deadline:
            self.cancel("operation timed out")
        return self._cancelled

    @property
    def reason(self) -> str:
        return self._reason

    def raise_if_cancelled(self) -> None:
        """Raise :class:`OperationCancelledError` if the token has fired."""
        if self.cancelled:
            raise OperationCancelledError(self._reason)

    async def wait(self) -> None:
        """Block until the token is cancelled (or its deadline passes)."""
        if self.cancelled:
            return
        if self._event is None:
            self._event = asyncio.Event()
        if self._deadline is None:
            await self._event.wait()
            return
        remaining = max(self._deadline - time.monotonic(), 0.0)
        try:
            await asyncio.wait_for(self._event.wait(), timeout=remaining)
        except asyncio.TimeoutError:
            self.cancel("operation timed out")


def raise_if_cancelled(cancel: Optional[CancellationToken]) -> None:
    """Check an optional token; ``None`` means the caller never cancels."""
    if cancel is not None:
        cancel.raise_if_cancelled()


async def run_cancellable(awaitable: Awaitable[T], cancel: Optional[CancellationToken]) -> T:
    """
    Await *awaitable*, abandoning it as soon as *cancel* fires.

    The pending work is cancelled (so its ``finally`` blocks release whatever they hold) before
    :class:`OperationCancelledError` is raised.
    """
    if cancel is None:
        return await awaitable
    cancel.raise_if_cancelled()

    work = asyncio.ensure_future(awaitable)
    watcher = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({work, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        watcher.cancel()
        if not work.done():
            work.cancel()
            try:
                await work
            except asyncio.CancelledError:
                pass
    if not work.cancelled() and work.done():
        return work.result()
    raise OperationCancelledError(cancel.reason)
