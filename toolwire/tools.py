"""Built-in tools and the registry that executes them.

The registry is the orchestrator's executor and validator: it resolves a
ToolCall to a Tool, checks its arguments and runs it. Read-only tools run
without confirmation; anything that writes or runs commands asks first.
"""

from __future__ import annotations

from dataclasses import dataclass
import inspect
import json
import logging
from pathlib import Path
from typing import Any, Callable

from toolwire.errors import ToolNotFoundError
from toolwire.format.adapters import OpenAIDefinitionAdapter
from toolwire.format.protocols import ToolDefinitionAdapter
from toolwire.format.types import ToolCall
from toolwire.fs import Workspace
from toolwire.shell import DEFAULT_BLACKLIST, run_command

logger = logging.getLogger(__name__)

UNKNOWN_TOOL_MESSAGE = (
    "This tool does not exist. Please use only the tools that are available in the system."
)


@dataclass
class Tool:
    """A tool available to the agent."""

    name: str
    description: str
    function: Callable[..., Any]
    parameters: dict[str, Any]  # JSON Schema
    requires_confirmation: bool = False
    # Returns an error message to reject the arguments, or None
    validator: Callable[[dict[str, Any]], str | None] | None = None

    @property
    def required_parameters(self) -> list[str]:
        return list(self.parameters.get("required", []))

    def to_openai_format(self) -> dict[str, Any]:
        """Convert to OpenAI tool format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


def _coerce(value: Any, schema: dict[str, Any]) -> Any:
    """Convert string values recovered from text calls to the schema type."""
    if not isinstance(value, str):
        return value
    kind = schema.get("type")
    try:
        if kind == "integer":
            return int(value.strip())
        if kind == "number":
            return float(value.strip())
    except ValueError:
        return value
    if kind == "boolean":
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1"):
            return True
        if lowered in ("false", "no", "0"):
            return False
    return value


def coerce_arguments(tool: Tool, arguments: dict[str, Any]) -> dict[str, Any]:
    properties = tool.parameters.get("properties", {})
    return {
        key: _coerce(value, properties.get(key, {}))
        for key, value in arguments.items()
    }


# ============================================================================
# Tool Definitions
# ============================================================================


def _make_read_file_tool(workspace: Workspace) -> Tool:
    def read_file(path: str, max_lines: int = 200) -> dict[str, Any]:
        """Read contents of a file."""
        content, byte_truncated = workspace.read_text(path, max_bytes=max_lines * 200)
        lines = content.split("\n")
        truncated = byte_truncated or len(lines) > max_lines
        if len(lines) > max_lines:
            content = "\n".join(lines[:max_lines]) + f"\n\n[...truncated, {len(lines) - max_lines} more lines...]"
        return {"content": content, "path": path, "truncated": truncated}

    return Tool(
        name="read_file",
        description="Read the contents of a file.",
        function=read_file,
        parameters={
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Path to the file to read"},
                "max_lines": {
                    "type": "integer",
                    "description": "Maximum lines to return (default 200)",
                    "default": 200,
                },
            },
            "required": ["path"],
        },
    )


def _make_list_dir_tool(workspace: Workspace) -> Tool:
    def list_dir(path: str = ".", include_hidden: bool = False) -> dict[str, Any]:
        """List contents of a directory."""
        return {"entries": workspace.list_entries(path, include_hidden=include_hidden), "path": path}

    return Tool(
        name="list_dir",
        description="List files and subdirectories in a directory.",
        function=list_dir,
        parameters={
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Directory path to list"},
                "include_hidden": {
                    "type": "boolean",
                    "description": "Include hidden files (default false)",
                    "default": False,
                },
            },
            "required": ["path"],
        },
    )


def _validate_write_mode(arguments: dict[str, Any]) -> str | None:
    mode = arguments.get("mode", "rewrite")
    if mode not in ("rewrite", "append"):
        return f"Invalid mode '{mode}'. Use 'rewrite' or 'append'."
    return None


def _make_write_file_tool(workspace: Workspace) -> Tool:
    def write_file(path: str, content: str, mode: str = "rewrite") -> dict[str, Any]:
        """Write content to a file."""
        written = workspace.write_text(path, content, mode=mode)
        return {"success": True, "path": path, "bytes_written": written}

    return Tool(
        name="write_file",
        description="Write or create a file. Use mode='append' to add to an existing file.",
        function=write_file,
        requires_confirmation=True,
        validator=_validate_write_mode,
        parameters={
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Path to file to write"},
                "content": {"type": "string", "description": "Content to write"},
                "mode": {
                    "type": "string",
                    "enum": ["rewrite", "append"],
                    "description": "Write mode (default: rewrite)",
                    "default": "rewrite",
                },
            },
            "required": ["path", "content"],
        },
    )


def _validate_edit(arguments: dict[str, Any]) -> str | None:
    if not arguments.get("old_text"):
        return "old_text must not be empty"
    if arguments.get("old_text") == arguments.get("new_text"):
        return "old_text and new_text are identical; nothing to change"
    return None


def _make_edit_block_tool(workspace: Workspace) -> Tool:
    def edit_block(path: str, old_text: str, new_text: str) -> dict[str, Any]:
        """Replace text in a file."""
        count = workspace.replace_block(path, old_text, new_text)
        return {"success": True, "path": path, "replacements": count}

    return Tool(
        name="edit_block",
        description="Replace a block of text in a file. The old_text must match exactly once.",
        function=edit_block,
        requires_confirmation=True,
        validator=_validate_edit,
        parameters={
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Path to file to edit"},
                "old_text": {"type": "string", "description": "Exact text to find and replace"},
                "new_text": {"type": "string", "description": "Replacement text"},
            },
            "required": ["path", "old_text", "new_text"],
        },
    )


def _make_execute_bash_tool(cwd: Path, timeout: float, blacklist: list[str]) -> Tool:
    async def execute_bash(command: str) -> str:
        """Run a shell command in the workspace."""
        result = await run_command(command, cwd=cwd, timeout=timeout, blacklist=blacklist)
        return result.render()

    return Tool(
        name="execute_bash",
        description="Execute a bash command in the workspace directory and return its output.",
        function=execute_bash,
        requires_confirmation=True,
        parameters={
            "type": "object",
            "properties": {
                "command": {"type": "string", "description": "The command to run"},
            },
            "required": ["command"],
        },
    )


# ============================================================================
# Tool Registry
# ============================================================================


class ToolRegistry:
    """Manages available tools and runs calls against them."""

    def __init__(
        self,
        allowed_roots: list[str] | None = None,
        enable_bash: bool = True,
        command_timeout: float = 60,
        command_blacklist: list[str] | None = None,
    ):
        self.allowed_roots = allowed_roots or ["."]
        self.workspace = Workspace(self.allowed_roots)
        self._tools: dict[str, Tool] = {}
        self.definitions: ToolDefinitionAdapter = OpenAIDefinitionAdapter()
        self._register(_make_read_file_tool(self.workspace))
        self._register(_make_list_dir_tool(self.workspace))
        self._register(_make_write_file_tool(self.workspace))
        self._register(_make_edit_block_tool(self.workspace))
        if enable_bash:
            cwd = Path(self.allowed_roots[0]).expanduser()
            blacklist = DEFAULT_BLACKLIST if command_blacklist is None else command_blacklist
            self._register(_make_execute_bash_tool(cwd, command_timeout, blacklist))

    def _register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def register(self, tool: Tool) -> None:
        """Add or replace a tool."""
        self._register(tool)

    def get_tool(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def list_tools(self) -> list[Tool]:
        return list(self._tools.values())

    def to_openai_tools(self) -> list[dict[str, Any]]:
        """Get OpenAI-formatted tool definitions."""
        return self.definitions.format_tools(self.list_tools())

    def requires_confirmation(self, call: ToolCall) -> bool:
        """Unknown tools never run, so they need no approval."""
        tool = self._tools.get(call.name)
        return tool.requires_confirmation if tool is not None else False

    async def validate(self, call: ToolCall) -> str | None:
        """Check a call before it runs.

        Returns:
            An error message for the model, or None if the call may run
        """
        tool = self._tools.get(call.name)
        if tool is None:
            return UNKNOWN_TOOL_MESSAGE

        missing = [p for p in tool.required_parameters if p not in call.arguments]
        if missing:
            return f"Missing required parameter(s) for {call.name}: {', '.join(missing)}"

        if tool.validator is not None:
            return tool.validator(coerce_arguments(tool, call.arguments))
        return None

    async def execute(self, call: ToolCall) -> str:
        """Run a call and return the text result.

        Raises:
            ToolNotFoundError: If no tool has the call's name
        """
        tool = self._tools.get(call.name)
        if tool is None:
            raise ToolNotFoundError(call.name)

        arguments = coerce_arguments(tool, call.arguments)
        logger.info(f"Executing tool {call.name}")
        if inspect.iscoroutinefunction(tool.function):
            output = await tool.function(**arguments)
        else:
            output = tool.function(**arguments)

        if isinstance(output, str):
            return output
        return json.dumps(output, indent=2, default=str)
