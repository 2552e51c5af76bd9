"""Tests for conversation sanitizing."""

import logging

from toolwire.format import ToolCall
from toolwire.messages import AssistantMessage, SystemMessage, ToolMessage, UserMessage
from toolwire.sanitizer import is_empty_assistant_message, sanitize


def _tool(call_id: str) -> ToolMessage:
    return ToolMessage(content="result", tool_call_id=call_id, name="read_file")


class TestIsEmptyAssistantMessage:
    """Tests for the empty-assistant predicate."""

    def test_none_content_without_calls(self):
        """No content and no calls is empty."""
        assert is_empty_assistant_message(AssistantMessage(content=None)) is True

    def test_blank_string(self):
        """Whitespace-only content is empty."""
        assert is_empty_assistant_message(AssistantMessage(content="  \n")) is True

    def test_empty_list_content(self):
        """An empty content-part list is empty."""
        assert is_empty_assistant_message(AssistantMessage(content=[])) is True

    def test_tool_calls_make_it_non_empty(self):
        """Tool calls alone are enough content."""
        message = AssistantMessage(content=None, tool_calls=[ToolCall("c1", "t", {})])
        assert is_empty_assistant_message(message) is False

    def test_other_roles_never_empty(self):
        """Only assistant messages are considered."""
        assert is_empty_assistant_message(UserMessage(content="")) is False


class TestSanitize:
    """Tests for sanitize()."""

    def test_removes_empty_assistant_and_orphaned_tools(self):
        """An empty assistant turn takes its following tool messages with it."""
        messages = [
            UserMessage(content="hi"),
            AssistantMessage(content=""),
            _tool("c1"),
            _tool("c2"),
            UserMessage(content="again"),
        ]

        result = sanitize(messages)

        assert result == [UserMessage(content="hi"), UserMessage(content="again")]

    def test_valid_pairs_untouched(self):
        """Assistant tool_calls followed by tool results survive."""
        call = ToolCall("c1", "read_file", {"path": "a"})
        messages = [
            SystemMessage(content="sys"),
            UserMessage(content="read a"),
            AssistantMessage(content=None, tool_calls=[call]),
            _tool("c1"),
            AssistantMessage(content="done"),
        ]

        assert sanitize(messages) == messages

    def test_only_contiguous_tool_run_removed(self):
        """Tool messages after an intervening message are kept."""
        messages = [
            AssistantMessage(content=None),
            _tool("c1"),
            UserMessage(content="u"),
            _tool("c2"),
        ]

        assert sanitize(messages) == [UserMessage(content="u"), _tool("c2")]

    def test_idempotent(self):
        """Sanitizing twice equals sanitizing once."""
        messages = [UserMessage(content="a"), AssistantMessage(content=" "), _tool("c1")]

        once = sanitize(messages)
        assert sanitize(once) == once

    def test_returns_copy(self):
        """The input list is not mutated."""
        messages = [UserMessage(content="a")]
        result = sanitize(messages)

        assert result == messages
        assert result is not messages

    def test_logs_counts_when_filtering(self, caplog):
        """A debug line reports original, filtered and removed counts."""
        with caplog.at_level(logging.DEBUG, logger="toolwire.sanitizer"):
            sanitize([AssistantMessage(content=""), _tool("c1"), UserMessage(content="u")])

        assert "original=3 filtered=1 removed=2" in caplog.text
