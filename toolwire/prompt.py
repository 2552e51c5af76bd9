"""Prompt management for toolwire.

Handles system prompt loading and the text-mode tool description used
when the provider does not accept tool definitions.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

DEFAULT_SYSTEM_PROMPT = """You are a coding assistant working inside the user's project directory.

Instructions:
- Use the available tools to read, list, edit files and run commands
- Read files before changing them
- Make one change at a time and verify it
- Be concise and reference specific file paths
- When the task is done, give a short summary of what you did"""

# Model-specific prompts optimized for small models
MODEL_PROMPTS = {
    "qwen": """You are a coding assistant with FULL access to the local project via tools.

CRITICAL: You MUST use tools to inspect or change files. DO NOT claim you don't have access.

ALWAYS do this:
1. If the user mentions a file → use read_file
2. If unsure what files exist → use list_dir
3. To change a file → use edit_block or write_file
4. THEN answer based on what you found

NEVER say "I don't have access" - USE THE TOOLS.""",
}


def load_system_prompt(model: str, prompts_dir: Path | None = None, override: str = "") -> str:
    """Load the appropriate system prompt for the model.

    Priority:
    1. Explicit override (config agent.system_prompt)
    2. Custom prompt file (prompts/{model_family}.md)
    3. Built-in model-specific prompt
    4. Default prompt
    """
    if override:
        return override

    model_lower = model.lower()
    model_family = next((family for family in MODEL_PROMPTS if family in model_lower), None)

    if prompts_dir and model_family:
        prompt_file = prompts_dir / f"{model_family}.md"
        if prompt_file.exists():
            return prompt_file.read_text().strip()

    if model_family:
        return MODEL_PROMPTS[model_family]

    return DEFAULT_SYSTEM_PROMPT


def _tool_fields(tool: Any) -> tuple[str, str, dict[str, Any]]:
    """Name, description and parameter schema of a Tool or OpenAI tool dict."""
    if isinstance(tool, dict):
        function = tool.get("function", tool)
        return (
            function.get("name", ""),
            function.get("description", ""),
            function.get("parameters", {}) or {},
        )
    return tool.name, tool.description, tool.parameters or {}


def format_tools_for_prompt(tools: list[Any]) -> str:
    """Describe tools in the system prompt for text-mode tool calling.

    Returns an empty string when there are no tools.
    """
    if not tools:
        return ""

    prompt = "\n\n## AVAILABLE TOOLS\n\n"
    prompt += "You have access to the following tools. To use a tool, output an XML block in this exact format:\n\n"
    prompt += "```xml\n<tool_name>\n<param1>value1</param1>\n<param2>value2</param2>\n</tool_name>\n```\n\n"
    prompt += "IMPORTANT:\n"
    prompt += "- Use the exact tool name as the outer XML tag\n"
    prompt += "- Each parameter should be its own XML tag inside\n"
    prompt += "- Do NOT use attributes like <function=name> or <parameter=name>\n"
    prompt += "- You may call multiple tools in sequence\n\n"

    for tool in tools:
        name, description, schema = _tool_fields(tool)
        properties = schema.get("properties", {}) or {}
        required = set(schema.get("required", []) or [])

        prompt += f"### {name}\n\n"
        prompt += f"{description}\n\n"
        prompt += "**Parameters:**\n"
        for param, spec in properties.items():
            flag = "(required)" if param in required else "(optional)"
            prompt += f"- `{param}` ({spec.get('type', 'string')}) {flag}: {spec.get('description', '')}\n"

        prompt += f"\n**Example:**\n```xml\n<{name}>\n"
        for param in [p for p in properties if p in required][:2]:
            prompt += f"<{param}>value</{param}>\n"
        prompt += f"</{name}>\n```\n\n"

    return prompt

