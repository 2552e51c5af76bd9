"""Backend implementations for LLM inference."""

from toolwire.backends.base import Backend, GenerateRequest, GenerateResponse
from toolwire.backends.openai_compat import OpenAICompatBackend

__all__ = [
    "Backend",
    "GenerateRequest",
    "GenerateResponse",
    "OpenAICompatBackend",
]
