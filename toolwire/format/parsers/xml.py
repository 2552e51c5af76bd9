"""Parser for pseudo-XML tool calls written into assistant text.

Expected shape::

    <read_file>
    <path>/path/to/file.txt</path>
    </read_file>

The outer tag names the tool, each inner tag is one argument.
"""

from __future__ import annotations

import logging
import re
import uuid

from toolwire.format.types import ParseMalformed, ParseSuccess, ToolCall

logger = logging.getLogger(__name__)

TOOL_CALL_RE = re.compile(r"<(\w+)>(.*?)</\1>", re.DOTALL)
PARAMETER_RE = re.compile(r"<(\w+)>(.*?)</\1>", re.DOTALL)
NESTED_TAG_RE = re.compile(r"<\w+>")
WRAPPER_RE = re.compile(r"</?tool_call>")
FENCE_RE = re.compile(r"```(?:\w+)?\s*\n?([\s\S]*?)\n?```")

# Markup a model may emit in prose that must never be mistaken for a tool
HTML_TAGS = frozenset({
    "div", "span", "p", "a", "ul", "ol", "li",
    "table", "tr", "td", "th", "thead", "tbody",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "br", "hr", "strong", "em", "code", "pre", "blockquote", "img",
    "section", "article", "header", "footer", "nav", "aside",
})

# (pattern, error) checked in order; first hit wins
MALFORMED_PATTERNS = [
    (
        re.compile(r"\[(?:tool_use|Tool):\s*(\w+)\]", re.IGNORECASE),
        "Invalid syntax: [tool_use: name] or [Tool: name] format is not supported",
    ),
    (
        re.compile(r"<function=(\w+)>"),
        "Invalid syntax: <function=name> is not supported",
    ),
    (
        re.compile(r"<parameter=(\w+)>"),
        "Invalid syntax: <parameter=name> is not supported",
    ),
]

CORRECT_FORMAT_EXAMPLES = """Please use the native tool calling format provided by the system. The tools are already available to you - call them directly using the function calling interface.

If you write a tool call as text, use the tool name as the outer tag and one simple named tag per parameter:

<read_file>
<path>/path/to/file.txt</path>
</read_file>

Do NOT use attribute-style tags like <function=name> or <parameter=name>."""


def _is_tool_tag(name: str, inner: str) -> bool:
    """Decide whether a matched ``<name>...</name>`` block is a tool call."""
    if name == "tool_call" or name.lower() in HTML_TAGS:
        return False
    # Bare <name>text</name> only counts for snake_case tool names
    return bool(NESTED_TAG_RE.search(inner)) or "_" in name


def find_tool_blocks(text: str) -> list[re.Match[str]]:
    """Return matches for every valid tool block in ``text``.

    A rejected match (an HTML wrapper, say) does not consume its body, so a
    tool call nested inside ``<p>...</p>`` is still found.
    """
    blocks: list[re.Match[str]] = []
    pos = 0
    while True:
        match = TOOL_CALL_RE.search(text, pos)
        if match is None:
            return blocks
        if _is_tool_tag(match.group(1), match.group(2)):
            blocks.append(match)
            pos = match.end()
        else:
            pos = match.start() + 1


def _parse_parameters(inner: str) -> dict[str, str]:
    return {m.group(1): m.group(2).strip() for m in PARAMETER_RE.finditer(inner)}


def _clean_whitespace(text: str) -> str:
    text = re.sub(r"[ \t]+$", "", text, flags=re.MULTILINE)
    # Collapse runs of spaces but leave indentation alone
    text = re.sub(r"([^ \t\n]) {2,}", r"\1 ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


class XMLToolParser:
    """Extracts ``<tool_name><param>value</param></tool_name>`` calls.

    Has priority over JSON: when any valid XML call is present, JSON in the
    same text is not considered.
    """

    def detect_malformed(self, content: str) -> ParseMalformed | None:
        """Catch attribute-style pseudo-function syntax before XML parsing."""
        for pattern, error in MALFORMED_PATTERNS:
            if pattern.search(content):
                logger.debug(f"Malformed XML tool call: {error}")
                return ParseMalformed(error=error, examples=CORRECT_FORMAT_EXAMPLES)
        return None

    def parse(self, content: str) -> ParseSuccess:
        """Extract tool calls and excise them from the content."""
        text = WRAPPER_RE.sub("", content)
        blocks = find_tool_blocks(text)
        if not blocks:
            return ParseSuccess(tool_calls=[], cleaned_content=content)

        tool_calls = []
        for index, match in enumerate(blocks):
            name, inner = match.group(1), match.group(2)
            tool_calls.append(ToolCall(
                id=f"xml_call_{index}_{uuid.uuid4().hex[:8]}",
                name=name,
                arguments=_parse_parameters(inner),
                raw=match.group(0),
            ))
            logger.debug(f"Parsed XML tool call: {name}")

        return ParseSuccess(tool_calls=tool_calls, cleaned_content=self.remove_tool_calls(content))

    def remove_tool_calls(self, content: str) -> str:
        """Strip tool blocks, fences that held them, and leftover wrappers."""

        def _drop_fence(match: re.Match[str]) -> str:
            body = WRAPPER_RE.sub("", match.group(1) or "")
            return "" if find_tool_blocks(body) else match.group(0)

        cleaned = FENCE_RE.sub(_drop_fence, content)
        cleaned = WRAPPER_RE.sub("", cleaned)

        pieces = []
        pos = 0
        for match in find_tool_blocks(cleaned):
            pieces.append(cleaned[pos:match.start()])
            pos = match.end()
        pieces.append(cleaned[pos:])

        return _clean_whitespace("".join(pieces))
