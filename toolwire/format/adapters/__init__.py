"""Format adapters for tool definitions and results."""

from toolwire.format.adapters.openai import (
    OpenAIDefinitionAdapter,
    OpenAIResultAdapter,
    TextResultAdapter,
)

__all__ = ["OpenAIDefinitionAdapter", "OpenAIResultAdapter", "TextResultAdapter"]
