"""
Tool registry for stepwise.

Tools are objects with a ``name``, a ``description`` and an async ``execute`` method that turns a
text input into a text observation.  The registry maps lookup keys to tool instances; a single
instance may be reachable under several keys (aliases) without being duplicated.
"""

import logging
import threading
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Dict,
    Iterable,
    List,
    Optional,
)

from stepwise.core.cancellation import CancellationToken
from stepwise.core.errors import ToolRegistrationError

logger = logging.getLogger(__name__)


class BaseTool(ABC):
    """A named capability invoked with text input and returning a text observation."""

    name: str = ""
    description: str = ""

    @abstractmethod
    async def execute(self, input: str, cancel: Optional[CancellationToken] = None) -> str:
        """
        Run the tool.

        Parameters
        ----------
        input:
            Free-form text chosen by the planner.
        cancel:
            Optional token threaded through from the caller.

        Raises
        ------
        ToolError
            If the tool fails; the agent loop reports the message as the observation.
        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"


# Extra lookup keys registered automatically for well-known tool names.
DEFAULT_ALIASES: Dict[str, List[str]] = {
    "websearch": ["SerpSearch", "WebSearch", "Google", "Search", "Internet search"],
}


def _key(name: str | None) -> str:
    return (name or "").strip().casefold()


class ToolRegistry:
    """
    Case-insensitive name -> tool lookup with alias support.

    Registration is expected to happen once at startup; lookups afterwards are read-only and safe
    to perform from concurrent turns.
    """

    def __init__(self, tools: Iterable[BaseTool] = ()) -> None:
        self._tools: Dict[str, BaseTool] = {}
        self._lock = threading.Lock()
        for tool in tools:
            self.register(tool)

    def register(self, tool: BaseTool, aliases: Iterable[str] = ()) -> None:
        """
        Register *tool* under its own name and any *aliases*.

        The primary name always points at the latest tool registered with it.  Aliases (explicit
        ones and the built-in sets from :data:`DEFAULT_ALIASES`) only claim keys that are still
        free, so they never shadow another tool's primary name.

        Raises
        ------
        ToolRegistrationError
            If the tool has an empty name.
        """
        primary = _key(tool.name)
        if not primary:
            raise ToolRegistrationError(f"Tool {tool!r} has an empty name.")

        with self._lock:
            self._tools[primary] = tool
            for alias in [*DEFAULT_ALIASES.get(primary, []), *aliases]:
                alias_key = _key(alias)
                if alias_key and alias_key not in self._tools:
                    self._tools[alias_key] = tool
        logger.debug("Registered tool '%s'", tool.name)

    def try_get(self, name: str | None) -> Optional[BaseTool]:
        """Return the tool registered under *name* (trimmed, any casing) or ``None``."""
        return self._tools.get(_key(name))

    def all(self) -> List[BaseTool]:
        """Return every distinct registered tool, in registration order."""
        seen: Dict[int, BaseTool] = {}
        for tool in list(self._tools.values()):
            seen.setdefault(id(tool), tool)
        return list(seen.values())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.try_get(name) is not None

    def __len__(self) -> int:
        return len(self.all())


class EchoTool(BaseTool):
    """Echo the input text back to the caller."""

    name = "echo"
    description = "Echo the input text back to the caller."

    async def execute(self, input: str, cancel: Optional[CancellationToken] = None) -> str:
        return input
