"""Removal of chain-of-thought blocks from assistant text."""

from __future__ import annotations

import re

_TAG = r"think(?:ing)?"

# Complete <think>...</think> pairs, non-greedy so adjacent blocks stay separate
_PAIRED = re.compile(rf"<({_TAG})>.*?</\1>", re.DOTALL | re.IGNORECASE)
# Closing tag whose opener was cut off upstream
_ORPHAN_CLOSE = re.compile(rf"</{_TAG}>", re.IGNORECASE)
# Opening tag never closed: the stream was truncated mid-thought
_UNTERMINATED = re.compile(rf"<{_TAG}>.*\Z", re.DOTALL | re.IGNORECASE)


def strip_thinking(content: str) -> str:
    """Remove reasoning blocks the model emitted before its answer.

    Text without any reasoning tags is returned unchanged.
    """
    if not content or not re.search(rf"</?{_TAG}>", content, re.IGNORECASE):
        return content

    stripped = _PAIRED.sub("", content)
    stripped = _ORPHAN_CLOSE.sub("", stripped)
    stripped = _UNTERMINATED.sub("", stripped)
    return stripped.strip()
