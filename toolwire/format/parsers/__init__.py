"""Tool call parsers."""

from toolwire.format.parsers.composite import ToolCallExtractor, deduplicate_tool_calls
from toolwire.format.parsers.inline_json import InlineJSONParser
from toolwire.format.parsers.openai import OpenAINativeParser
from toolwire.format.parsers.xml import XMLToolParser

__all__ = [
    "InlineJSONParser",
    "OpenAINativeParser",
    "ToolCallExtractor",
    "XMLToolParser",
    "deduplicate_tool_calls",
]
