"""Conversation sanitizing before an outbound request.

Strict chat APIs reject an assistant message with neither content nor
tool_calls, and reject tool messages that no assistant tool_calls turn
precedes. ``sanitize`` drops both.
"""

from __future__ import annotations

import logging

from toolwire.messages import AssistantMessage, Message, ToolMessage

logger = logging.getLogger(__name__)


def is_empty_assistant_message(message: Message) -> bool:
    """True for an assistant message with no content and no tool calls."""
    if not isinstance(message, AssistantMessage):
        return False
    if message.tool_calls:
        return False

    content = message.content
    if content is None:
        return True
    if isinstance(content, str):
        return not content.strip()
    if isinstance(content, list):
        return len(content) == 0
    return False


def sanitize(messages: list[Message]) -> list[Message]:
    """Remove empty assistant messages and the tool results orphaned by them.

    Idempotent; order of the surviving messages is preserved.
    """
    skip: set[int] = set()

    for index, message in enumerate(messages):
        if not is_empty_assistant_message(message):
            continue
        skip.add(index)
        follow = index + 1
        while follow < len(messages) and isinstance(messages[follow], ToolMessage):
            skip.add(follow)
            follow += 1

    if not skip:
        return list(messages)

    filtered = [m for i, m in enumerate(messages) if i not in skip]
    logger.debug(
        f"Filtered empty assistant messages and orphaned tool results: "
        f"original={len(messages)} filtered={len(filtered)} removed={len(skip)}"
    )
    return filtered
