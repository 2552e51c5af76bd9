"""Abstract backend interface for LLM inference."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class GenerateRequest:
    """Request to generate a response."""

    messages: list[dict[str, Any]]  # OpenAI-style messages, without the system prompt
    system: str
    model: str
    temperature: float = 0.7
    max_tokens: int = 1024


@dataclass
class GenerateResponse:
    """Response from generation."""

    content: str
    tokens_prompt: int
    tokens_completion: int
    model: str
    finish_reason: str  # "stop", "length", "error", "tool_calls"
    tool_calls: list[dict[str, Any]] = field(default_factory=list)
    raw_response: dict[str, Any] | None = None


class Backend(ABC):
    """Abstract backend for LLM inference."""

    @abstractmethod
    async def generate(self, request: GenerateRequest) -> GenerateResponse:
        """Generate a response without tool definitions."""

    @abstractmethod
    async def generate_with_tools(
        self,
        request: GenerateRequest,
        tools: list[dict[str, Any]],
    ) -> GenerateResponse:
        """Generate a response, offering OpenAI-format tool definitions."""

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if backend is available."""

    async def list_models(self) -> list[str]:
        """List available models."""
        return []
