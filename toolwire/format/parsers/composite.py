"""Tool-call extraction over free-form assistant text."""

from __future__ import annotations

import logging

from toolwire.format.parsers.inline_json import InlineJSONParser
from toolwire.format.parsers.xml import XMLToolParser
from toolwire.format.protocols import TextToolParser
from toolwire.format.thinking import strip_thinking
from toolwire.format.types import ParseOutcome, ParseSuccess, ToolCall

logger = logging.getLogger(__name__)


def deduplicate_tool_calls(tool_calls: list[ToolCall]) -> list[ToolCall]:
    """Drop repeated ids and calls with the same name and equal arguments.

    The first occurrence wins and order is preserved.
    """
    seen_ids: set[str] = set()
    seen_signatures: set[str] = set()
    unique = []
    for call in tool_calls:
        signature = call.signature()
        if call.id in seen_ids or signature in seen_signatures:
            logger.debug(f"Dropping duplicate tool call: {call.name}")
            continue
        seen_ids.add(call.id)
        seen_signatures.add(signature)
        unique.append(call)
    return unique


class ToolCallExtractor:
    """Turns one completed assistant turn into tool calls or a diagnostic.

    Pipeline:
    1. Strip ``<think>`` blocks
    2. For each parser in priority order (XML, then JSON): a malformed
       attempt short-circuits with ParseMalformed; valid calls end the search
    3. Deduplicate

    Never raises on malformed or empty input.
    """

    def __init__(self, parsers: list[TextToolParser] | None = None):
        if parsers is None:
            self.parsers: list[TextToolParser] = [XMLToolParser(), InlineJSONParser()]
        else:
            self.parsers = parsers

    def parse(self, content: str | None) -> ParseOutcome:
        """Parse assistant text into a ParseSuccess or ParseMalformed."""
        if not content or not content.strip():
            return ParseSuccess(tool_calls=[], cleaned_content=content or "")

        text = strip_thinking(content)

        for parser in self.parsers:
            malformed = parser.detect_malformed(text)
            if malformed is not None:
                logger.info(f"Malformed tool call via {parser.__class__.__name__}: {malformed.error}")
                return malformed

            result = parser.parse(text)
            if result.tool_calls:
                tool_calls = deduplicate_tool_calls(result.tool_calls)
                logger.info(f"Parsed {len(tool_calls)} tool call(s) via {parser.__class__.__name__}")
                return ParseSuccess(tool_calls=tool_calls, cleaned_content=result.cleaned_content)

        return ParseSuccess(tool_calls=[], cleaned_content=text)
