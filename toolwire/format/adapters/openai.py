"""OpenAI-compatible format adapters."""

from __future__ import annotations

from typing import Any

from toolwire.format.types import ToolCall, ToolResult
from toolwire.messages import AssistantMessage, ToolMessage


class OpenAIResultAdapter:
    """Formats tool results as protocol ``tool`` messages.

    Only valid after an assistant message that carried native tool_calls.
    """

    def format_result(self, call: ToolCall, result: ToolResult) -> ToolMessage:
        """Convert one result to a tool message tagged with its call."""
        return ToolMessage(content=result.content, tool_call_id=call.id, name=call.name)


class TextResultAdapter:
    """Formats tool results as plain assistant prose.

    Used when the calls were recovered from text: backends without native
    tool support also reject ``tool`` messages that no tool_calls turn
    precedes.
    """

    def format_result(self, call: ToolCall, result: ToolResult) -> str:
        if result.success:
            return f'Tool "{call.name}" executed successfully. Result:\n{result.content}'
        return f'Tool "{call.name}" failed. Error:\n{result.content}'

    def format_results(self, calls: list[ToolCall], results: list[ToolResult]) -> AssistantMessage:
        """Fold a batch of results into one assistant message."""
        by_id = {call.id: call for call in calls}
        sections = []
        for result in results:
            call = by_id.get(result.call_id) or ToolCall(id=result.call_id, name=result.tool_name)
            sections.append(self.format_result(call, result))
        return AssistantMessage(content="\n\n".join(sections))


class OpenAIDefinitionAdapter:
    """Formats tool definitions for OpenAI-compatible APIs."""

    def format_tools(self, tools: list) -> list[dict[str, Any]]:
        """Convert Tool objects (or plain dicts) to OpenAI format.

        Args:
            tools: List of Tool objects (from toolwire.tools) or dicts

        Returns:
            List of OpenAI-format tool definitions
        """
        result = []
        for tool in tools:
            if hasattr(tool, "to_openai_format"):
                result.append(tool.to_openai_format())
            elif isinstance(tool, dict):
                if "type" in tool and "function" in tool:
                    result.append(tool)
                else:
                    result.append({
                        "type": "function",
                        "function": {
                            "name": tool.get("name", ""),
                            "description": tool.get("description", ""),
                            "parameters": tool.get("parameters", {}),
                        },
                    })
        return result
