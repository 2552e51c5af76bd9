"""Parser for JSON tool calls written into assistant text.

Accepts one or more top-level objects of the form
``{"name": "...", "arguments": {...}}``, bare or fenced as ```json.
"""

from __future__ import annotations

from collections.abc import Iterator
import json
import logging
import re
from typing import Any
import uuid

from toolwire.format.types import ParseMalformed, ParseSuccess, ToolCall

logger = logging.getLogger(__name__)

EMPTY_FENCE_RE = re.compile(r"```(?:json)?[ \t]*\n?\s*```")

_decoder = json.JSONDecoder()


def correct_format_example(name: str | None = None) -> str:
    """Corrected JSON example, reusing the tool name when the model gave one."""
    example = {
        "name": name or "read_file",
        "arguments": {"path": "/path/to/file.txt"},
    }
    return (
        "Correct format:\n"
        "```json\n"
        f"{json.dumps(example, indent=2)}\n"
        "```\n"
        'Every tool call needs a string "name" and an "arguments" object '
        "mapping parameter names to values."
    )


def iter_json_objects(text: str) -> Iterator[tuple[dict[str, Any], int, int]]:
    """Yield ``(obj, start, end)`` for each top-level JSON object in ``text``.

    Braces that do not open valid JSON (code, prose) are skipped.
    """
    pos = text.find("{")
    while pos != -1:
        try:
            obj, end = _decoder.raw_decode(text, pos)
        except json.JSONDecodeError:
            pos = text.find("{", pos + 1)
            continue
        if isinstance(obj, dict):
            yield obj, pos, end
        pos = text.find("{", end)


# Keys other chat formats use where "arguments" belongs
ARGUMENT_ALIASES = ("parameters", "args", "input", "function")


def _is_candidate(obj: dict[str, Any]) -> bool:
    """Objects that look like an attempted tool call."""
    if not obj:
        return False
    if "arguments" in obj or set(obj) == {"name"}:
        return True
    return isinstance(obj.get("name"), str) and any(key in obj for key in ARGUMENT_ALIASES)


def _defect(obj: dict[str, Any]) -> str | None:
    name = obj.get("name")
    if not isinstance(name, str) or not name.strip():
        return 'Invalid tool call: missing "name" field'
    if "arguments" not in obj:
        return 'Invalid tool call: missing "arguments" field'
    if not isinstance(obj["arguments"], dict):
        return 'Invalid tool call: "arguments" must be an object'
    return None


class InlineJSONParser:
    """Extracts ``{"name": ..., "arguments": {...}}`` objects from text."""

    def detect_malformed(self, content: str) -> ParseMalformed | None:
        """Report the first tool-call-shaped object that is missing a piece."""
        for obj, _, _ in iter_json_objects(content):
            if not _is_candidate(obj):
                continue
            error = _defect(obj)
            if error:
                logger.debug(f"Malformed JSON tool call: {error}")
                name = obj.get("name") if isinstance(obj.get("name"), str) else None
                return ParseMalformed(error=error, examples=correct_format_example(name))
        return None

    def parse(self, content: str) -> ParseSuccess:
        """Extract well-formed calls and excise them from the content."""
        tool_calls: list[ToolCall] = []
        spans: list[tuple[int, int]] = []

        for obj, start, end in iter_json_objects(content):
            if not _is_candidate(obj) or _defect(obj):
                continue
            tool_calls.append(ToolCall(
                id=f"json_call_{len(tool_calls)}_{uuid.uuid4().hex[:8]}",
                name=obj["name"],
                arguments=obj["arguments"],
                raw=content[start:end],
            ))
            spans.append((start, end))

        if not tool_calls:
            return ParseSuccess(tool_calls=[], cleaned_content=content)

        pieces = []
        pos = 0
        for start, end in spans:
            pieces.append(content[pos:start])
            pos = end
        pieces.append(content[pos:])
        cleaned = EMPTY_FENCE_RE.sub("", "".join(pieces))
        cleaned = re.sub(r"\n\s*\n\s*\n", "\n\n", cleaned).strip()

        return ParseSuccess(tool_calls=tool_calls, cleaned_content=cleaned)
