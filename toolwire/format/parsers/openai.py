"""Parser for the OpenAI/Ollama native tool_calls field."""

from __future__ import annotations

import logging
from typing import Any
import uuid

from toolwire.format.types import ParsedResponse, ToolCall

logger = logging.getLogger(__name__)


class OpenAINativeParser:
    """Parses the structured ``tool_calls`` field of a provider response.

    Supports both:
    - Ollama format: response.message.tool_calls
    - OpenAI format: response.choices[0].message.tool_calls
    """

    def _extract_message(self, response: Any) -> dict | None:
        """Extract the message object from various response formats."""
        if not isinstance(response, dict):
            return None

        choices = response.get("choices")
        if choices and isinstance(choices, list):
            choice = choices[0]
            if isinstance(choice, dict) and isinstance(choice.get("message"), dict):
                return choice["message"]

        msg = response.get("message")
        if isinstance(msg, dict):
            return msg

        # Already the message
        if "tool_calls" in response or "content" in response:
            return response

        return None

    def can_parse(self, response: Any) -> bool:
        """Check for a non-empty tool_calls list."""
        msg = self._extract_message(response)
        return bool(msg and msg.get("tool_calls"))

    def parse(self, response: Any) -> ParsedResponse:
        """Extract tool calls from the native field.

        String arguments are JSON-decoded; undecodable ones become ``{}``.
        Calls without a name are dropped.
        """
        msg = self._extract_message(response) or {}
        content = msg.get("content") or ""

        tool_calls = []
        for raw in msg.get("tool_calls") or []:
            if not isinstance(raw, dict):
                continue
            call = ToolCall.from_openai(raw)
            if not call.name.strip():
                logger.debug("Dropping native tool call without a name")
                continue
            if not call.id:
                call.id = f"call_{uuid.uuid4().hex[:12]}"
            call.raw = raw
            tool_calls.append(call)

        return ParsedResponse(
            content=content if isinstance(content, str) else "",
            tool_calls=tool_calls,
            finish_reason="tool_calls" if tool_calls else "stop",
            raw_response=response,
        )
