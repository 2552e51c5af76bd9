"""Protocol definitions for tool-call parsers and adapters.

These protocols define the contracts that every parser and adapter
implements so the extractor and orchestrator can stay format-agnostic.
"""

from typing import Any, Protocol, runtime_checkable

from toolwire.format.types import ParseMalformed, ParseSuccess, ToolCall, ToolResult


@runtime_checkable
class TextToolParser(Protocol):
    """Recovers tool calls embedded in free-form assistant text.

    Implementations never raise on malformed or empty input.
    """

    def detect_malformed(self, content: str) -> ParseMalformed | None:
        """Look for a recognizable but unusable tool-call attempt.

        Args:
            content: Assistant text with reasoning blocks already removed

        Returns:
            A ParseMalformed describing the mistake, or None
        """
        ...

    def parse(self, content: str) -> ParseSuccess:
        """Extract well-formed calls and excise them from the text.

        Args:
            content: Assistant text with reasoning blocks already removed

        Returns:
            ParseSuccess with the calls found (possibly none) and the cleaned text
        """
        ...


@runtime_checkable
class ToolDefinitionAdapter(Protocol):
    """Converts internal tool definitions to provider format."""

    def format_tools(self, tools: list) -> Any:
        """Convert tools to provider-specific format.

        Args:
            tools: List of internal Tool objects

        Returns:
            Provider-specific tool definition format
        """
        ...


@runtime_checkable
class ToolResultAdapter(Protocol):
    """Converts tool results to provider message format."""

    def format_result(self, call: ToolCall, result: ToolResult) -> Any:
        """Convert result to provider-specific message.

        Args:
            call: The original tool call
            result: The result of executing the tool

        Returns:
            A message (or message text) for the provider conversation
        """
        ...
