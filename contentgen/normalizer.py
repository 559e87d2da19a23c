from __future__ import annotations
import json
import logging
import re
from typing import Any, Optional

from .errors import ErrorKind, GenerationError
from .tool_results import ToolResult, coerce_content

logger = logging.getLogger(__name__)

_JSON_FENCE_RE = re.compile(r"```[ \t]*json[ \t]*\r?\n?(.*?)```", re.IGNORECASE | re.DOTALL)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


def _strict_loads(text: str) -> Any:
    return json.loads(text, parse_constant=_reject_constant)


def first_balanced_object(text: str) -> Optional[str]:
    """Return the first {...} span whose braces balance, ignoring braces inside strings."""
    start = text.find("{")
    if start == -1:
        return None
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def parse_structured(text: str) -> Any:
    """Recover a JSON value from provider text.

    Tries, in order: the whole text, the first ```json fenced block, the
    first balanced brace span. Raises GenerationError(PARSE) when all fail.
    """
    stripped = (text or "").strip()
    if not stripped:
        raise GenerationError(ErrorKind.PARSE, "empty response text")
    try:
        return _strict_loads(stripped)
    except ValueError:
        pass

    fence = _JSON_FENCE_RE.search(stripped)
    if fence:
        try:
            value = _strict_loads(fence.group(1).strip())
            logger.debug("Recovered JSON from fenced block")
            return value
        except ValueError:
            pass

    span = first_balanced_object(stripped)
    if span is not None:
        try:
            value = _strict_loads(span)
            logger.debug("Recovered JSON from brace span at offset %d", stripped.find(span))
            return value
        except ValueError:
            pass

    raise GenerationError(ErrorKind.PARSE, "no parseable JSON found in response")


def normalize(tool_id: str, text: str) -> ToolResult:
    return coerce_content(tool_id, parse_structured(text))
