"""Tool-call format layer.

This package makes tool calling format-agnostic by:
1. Recovering tool calls from native fields, pseudo-XML or inline JSON
2. Normalizing them to the internal ToolCall representation
3. Formatting results back into provider messages

Usage:
    from toolwire.format import ToolCallExtractor

    outcome = ToolCallExtractor().parse(assistant_text)
    if outcome.success:
        for call in outcome.tool_calls:
            ...
    else:
        print(outcome.error, outcome.examples)
"""

from toolwire.format.parsers import OpenAINativeParser, ToolCallExtractor, deduplicate_tool_calls
from toolwire.format.types import (
    ParsedResponse,
    ParseMalformed,
    ParseOutcome,
    ParseSuccess,
    ToolCall,
    ToolResult,
)

__all__ = [
    "OpenAINativeParser",
    "ParseMalformed",
    "ParseOutcome",
    "ParseSuccess",
    "ParsedResponse",
    "ToolCall",
    "ToolCallExtractor",
    "ToolResult",
    "deduplicate_tool_calls",
]
