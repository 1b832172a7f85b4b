"""
Conversation persistence.

Each session is an append-only, ordered list of :class:`Message`.  Appends to one session are
serialised with a per-session :class:`asyncio.Lock`; different sessions never wait on each other.
"""

import asyncio
import json
import logging
import threading
from abc import (
    ABC,
    abstractmethod,
)
from collections import defaultdict
from pathlib import Path
from typing import (
    DefaultDict,
    Dict,
    List,
    Sequence,
    Tuple,
)

from stepwise.core.schema import Message

logger = logging.getLogger(__name__)


class ConversationStore(ABC):
    """Append-only storage for conversation messages, keyed by session id."""

    def __init__(self) -> None:
        self._locks: DefaultDict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        return self._locks[session_id]

    @abstractmethod
    async def append(self, session_id: str, message: Message) -> None:
        """Add *message* to the end of the session's history."""

    @abstractmethod
    async def load(self, session_id: str) -> Sequence[Message]:
        """Return the session's messages in insertion order (empty for unknown sessions)."""

    @abstractmethod
    async def list_sessions(self) -> List[str]:
        """Return the ids of every session with at least one message."""


class InMemoryConversationStore(ConversationStore):
    """Process-local store; history is lost on restart."""

    def __init__(self) -> None:
        super().__init__()
        self._db: Dict[str, List[Message]] = {}

    async def append(self, session_id: str, message: Message) -> None:
        async with self._lock_for(session_id):
            self._db.setdefault(session_id, []).append(message)

    async def load(self, session_id: str) -> Tuple[Message, ...]:
        return tuple(self._db.get(session_id, ()))

    async def list_sessions(self) -> List[str]:
        return list(self._db)


class JsonlConversationStore(InMemoryConversationStore):
    """
    In-memory store backed by a flat-file audit trail (JSON lines format).

    Every append is written as ``{"session_id": ..., "message": {...}}``; the file is replayed
    when the store is created, so history survives restarts.
    """

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self._path = Path(path)
        self._file_lock = threading.Lock()  # appends from different sessions share the file
        self._path.parent.mkdir(parents=True, exist_ok=True)
        if not self._path.exists():
            self._path.touch()  # Create an empty file if it doesn't exist
        self._replay()

    def _replay(self) -> None:
        with self._path.open("r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    record = json.loads(line)
                    message = Message.model_validate(record["message"])
                    self._db.setdefault(record["session_id"], []).append(message)
                except (ValueError, KeyError, TypeError) as exc:
                    logger.warning("Skipping unreadable history line %d in %s: %s", lineno, self._path, exc)
        logger.info("Loaded %d sessions from %s", len(self._db), self._path)

    def _write_line(self, record: str) -> None:
        with self._file_lock, self._path.open("a", encoding="utf-8") as f:
            f.write(record + "\n")

    async def append(self, session_id: str, message: Message) -> None:
        record = json.dumps({"session_id": session_id, "message": message.model_dump(mode="json")})
        async with self._lock_for(session_id):
            await asyncio.to_thread(self._write_line, record)
            self._db.setdefault(session_id, []).append(message)
