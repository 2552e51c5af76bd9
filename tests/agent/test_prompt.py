"""Tests for system prompt loading and text-mode tool descriptions."""

from toolwire.prompt import (
    DEFAULT_SYSTEM_PROMPT,
    MODEL_PROMPTS,
    format_tools_for_prompt,
    load_system_prompt,
)
from toolwire.tools import ToolRegistry


class TestLoadSystemPrompt:
    def test_override_wins(self, tmp_path):
        """An explicit prompt beats everything else."""
        (tmp_path / "qwen.md").write_text("from file")
        assert load_system_prompt("qwen2.5", tmp_path, override="mine") == "mine"

    def test_prompt_file_for_family(self, tmp_path):
        """A prompts/<family>.md file replaces the built-in prompt."""
        (tmp_path / "qwen.md").write_text("  custom qwen prompt\n")
        assert load_system_prompt("Qwen2.5-Coder:7b", tmp_path) == "custom qwen prompt"

    def test_builtin_family_prompt(self):
        """Known families get their tuned prompt."""
        assert load_system_prompt("qwen3:4b") == MODEL_PROMPTS["qwen"]

    def test_default_prompt(self, tmp_path):
        """Unknown models fall back to the default prompt."""
        assert load_system_prompt("llama3", tmp_path) == DEFAULT_SYSTEM_PROMPT


class TestFormatToolsForPrompt:
    def test_empty_tools(self):
        """No tools means no tool section."""
        assert format_tools_for_prompt([]) == ""

    def test_header_and_rules(self):
        """The section explains the XML format and forbids attribute syntax."""
        text = format_tools_for_prompt(ToolRegistry().list_tools())

        assert text.startswith("\n\n## AVAILABLE TOOLS\n\n")
        assert "Do NOT use attributes like <function=name> or <parameter=name>" in text

    def test_tool_entry(self):
        """Each tool lists its parameters and an example call."""
        text = format_tools_for_prompt(ToolRegistry().list_tools())

        assert "### read_file\n\nRead the contents of a file.\n\n" in text
        assert "- `path` (string) (required): Path to the file to read\n" in text
        assert "- `max_lines` (integer) (optional):" in text
        assert "<read_file>\n<path>value</path>\n</read_file>" in text

    def test_example_uses_two_required_parameters(self):
        """Examples show at most the first two required parameters."""
        text = format_tools_for_prompt(ToolRegistry().list_tools())

        assert "<edit_block>\n<path>value</path>\n<old_text>value</old_text>\n</edit_block>" in text

    def test_openai_dicts_accepted(self):
        """Tool definitions in OpenAI shape work too."""
        definitions = ToolRegistry().to_openai_tools()
        assert format_tools_for_prompt(definitions) == format_tools_for_prompt(ToolRegistry().list_tools())

