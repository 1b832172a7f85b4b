"""
A forgiving front-end for :mod:`json`.

LLMs like to decorate their JSON with ``// comments``, ``/* block comments */`` and trailing
commas.  :func:`loads` removes those (outside string literals only) and hands the result to the
standard decoder, so everything else is still validated strictly.
"""

import json
from typing import (
    Any,
    List,
    Tuple,
)

# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------
_WS = " \t\r\n"


def _skip_ws(s: str, i: int) -> int:
    while i < len(s) and s[i] in _WS:
        i += 1
    return i


def _read_string(s: str, i: int) -> Tuple[str, int]:
    """Return the raw double-quoted literal starting at s[i] (quotes and escapes kept)."""
    start = i
    i += 1
    esc = False
    while i < len(s):
        ch = s[i]
        if esc:
            esc = False
        elif ch == "\\":
            esc = True
        elif ch == '"':
            return s[start : i + 1], i + 1
        i += 1
    # Unterminated: hand the rest to json.loads and let it complain.
    return s[start:], len(s)


def _skip_comment(s: str, i: int) -> int:
    """Given s[i:i+2] is '//' or '/*', return the index just past the comment."""
    if s.startswith("//", i):
        end = s.find("\n", i)
        return len(s) if end < 0 else end
    end = s.find("*/", i + 2)
    return len(s) if end < 0 else end + 2


def _next_significant(s: str, i: int) -> int:
    """Index of the next character that is neither whitespace nor inside a comment."""
    while True:
        i = _skip_ws(s, i)
        if s.startswith("//", i) or s.startswith("/*", i):
            i = _skip_comment(s, i)
            continue
        return i


def strip_noise(text: str) -> str:
    """Remove comments and trailing commas that sit outside string literals."""
    out: List[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == '"':
            literal, i = _read_string(text, i)
            out.append(literal)
            continue
        if text.startswith("//", i) or text.startswith("/*", i):
            i = _skip_comment(text, i)
            out.append(" ")
            continue
        if ch == ",":
            j = _next_significant(text, i + 1)
            if j < len(text) and text[j] in "}]":
                i += 1  # drop trailing comma
                continue
        out.append(ch)
        i += 1
    return "".join(out)


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------
def loads(text: str) -> Any:
    """
    Decode *text* as JSON after stripping comments and trailing commas.

    Raises
    ------
    json.JSONDecodeError
        If the cleaned text is still not valid JSON.
    """
    return json.loads(strip_noise(text))
