"""Internal representations for tool calling.

These types are the common currency between the extractor, the
orchestrator and the provider adapters, regardless of whether a call
arrived through a native ``tool_calls`` field or was recovered from text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from typing import Any


@dataclass
class ToolCall:
    """Normalized tool call.

    ``arguments`` is always a dict, never a bare scalar.
    """
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    raw: Any = None  # Original fragment for debugging

    def signature(self) -> str:
        """Stable key for deep-equality of name + arguments."""
        return f"{self.name}:{json.dumps(self.arguments, sort_keys=True, default=str)}"

    def to_openai(self) -> dict[str, Any]:
        """Serialize to the OpenAI ``tool_calls`` wire shape."""
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.name,
                "arguments": json.dumps(self.arguments),
            },
        }

    @classmethod
    def from_openai(cls, data: dict[str, Any]) -> ToolCall:
        func = data.get("function", data)
        args = func.get("arguments", {})
        if isinstance(args, str):
            try:
                args = json.loads(args) if args.strip() else {}
            except json.JSONDecodeError:
                args = {}
        if not isinstance(args, dict):
            args = {}
        return cls(id=data.get("id") or "", name=func.get("name", ""), arguments=args)


@dataclass
class ToolResult:
    """Outcome of one tool call.

    ``content`` is what the model sees; ``error`` is set when the call
    failed validation or raised.
    """
    call_id: str
    tool_name: str
    content: str
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class ParseSuccess:
    """Text parsed cleanly: zero or more calls plus the leftover prose."""
    tool_calls: list[ToolCall] = field(default_factory=list)
    cleaned_content: str = ""

    @property
    def success(self) -> bool:
        return True


@dataclass
class ParseMalformed:
    """Text contained a tool-call attempt in an unusable shape."""
    error: str
    examples: str

    @property
    def success(self) -> bool:
        return False


ParseOutcome = ParseSuccess | ParseMalformed


@dataclass
class ParsedResponse:
    """Result of reading a raw provider response.

    Contains both the text content and any native tool calls found.
    """
    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str = "stop"
    raw_response: Any = None
