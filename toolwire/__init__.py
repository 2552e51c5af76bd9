"""toolwire - terminal coding agent with a text-channel tool-calling engine."""

__version__ = "0.3.0"

from toolwire.agent import Agent, AgentResponse
from toolwire.config import Config, load_config
from toolwire.format import ParseMalformed, ParseSuccess, ToolCall, ToolCallExtractor, ToolResult
from toolwire.session import Session
from toolwire.tools import Tool, ToolRegistry

__all__ = [
    "Agent",
    "AgentResponse",
    "Config",
    "ParseMalformed",
    "ParseSuccess",
    "Session",
    "Tool",
    "ToolCall",
    "ToolCallExtractor",
    "ToolRegistry",
    "ToolResult",
    "load_config",
]
