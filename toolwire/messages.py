"""Chat message types.

One dataclass per role, each carrying exactly the fields that role may
have. ``to_dict`` produces the OpenAI chat wire shape and
``message_from_dict`` reverses it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Union

from toolwire.format.types import ToolCall


@dataclass
class SystemMessage:
    content: str
    role: ClassVar[str] = "system"

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content}


@dataclass
class UserMessage:
    content: str
    role: ClassVar[str] = "user"

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content}


@dataclass
class AssistantMessage:
    """Assistant turn.

    ``content`` may be absent, a string, or a list of content parts.
    """
    content: str | list[Any] | None = None
    tool_calls: list[ToolCall] | None = None
    role: ClassVar[str] = "assistant"

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def without_tool_calls(self) -> AssistantMessage:
        return AssistantMessage(content=self.content)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [tc.to_openai() for tc in self.tool_calls]
        return data


@dataclass
class ToolMessage:
    content: str
    tool_call_id: str
    name: str
    role: ClassVar[str] = "tool"

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "tool_call_id": self.tool_call_id,
            "name": self.name,
        }


Message = Union[SystemMessage, UserMessage, AssistantMessage, ToolMessage]


def message_from_dict(data: dict[str, Any]) -> Message:
    """Build a message from its wire dict.

    Raises:
        ValueError: If the role is missing or unknown
    """
    role = data.get("role")
    if role == "system":
        return SystemMessage(content=data.get("content") or "")
    if role == "user":
        return UserMessage(content=data.get("content") or "")
    if role == "assistant":
        raw_calls = data.get("tool_calls") or []
        return AssistantMessage(
            content=data.get("content"),
            tool_calls=[ToolCall.from_openai(tc) for tc in raw_calls] or None,
        )
    if role == "tool":
        return ToolMessage(
            content=data.get("content") or "",
            tool_call_id=data.get("tool_call_id") or "",
            name=data.get("name") or "",
        )
    raise ValueError(f"Unknown message role: {role!r}")


def messages_to_dicts(messages: list[Message]) -> list[dict[str, Any]]:
    return [m.to_dict() for m in messages]
