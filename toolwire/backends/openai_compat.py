"""OpenAI-compatible backend for toolwire.

Works with llama-server, vLLM, Ollama's /v1 endpoint, text-generation-inference
and any OpenAI-compatible API (including OpenAI itself).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from toolwire.backends.base import Backend, GenerateRequest, GenerateResponse
from toolwire.errors import APIError, RetryError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {500, 502, 503, 504}


class OpenAICompatBackend(Backend):
    """OpenAI-compatible LLM backend.

    Non-2xx responses become APIError carrying the status and body.
    Transient failures (5xx, connect errors, timeouts) are retried
    ``max_retries`` times; when every attempt fails a RetryError wraps them.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8080/v1",
        api_key: str | None = None,
        timeout: int = 120,
        temperature: float = 0.7,
        model: str | None = None,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.temperature = temperature
        self.default_model = model
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._transport = transport

        # Build headers
        self.headers = {"Content-Type": "application/json"}
        if api_key:
            self.headers["Authorization"] = f"Bearer {api_key}"

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout if timeout is not None else self.timeout,
            transport=self._transport,
        )

    def _payload(self, request: GenerateRequest) -> dict[str, Any]:
        # Prepend system as first message
        messages = [{"role": "system", "content": request.system}, *request.messages]
        return {
            "model": request.model or self.default_model or "default",
            "messages": messages,
            "stream": False,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
        }

    async def _post_chat(self, payload: dict[str, Any]) -> dict[str, Any]:
        """POST to /chat/completions with retries for transient failures.

        Raises:
            APIError: On a non-retryable HTTP error status
            RetryError: When every attempt failed transiently
        """
        errors: list[BaseException] = []
        for attempt in range(self.max_retries + 1):
            if attempt:
                await asyncio.sleep(self.retry_delay * attempt)
            try:
                async with self._client() as client:
                    response = await client.post(
                        f"{self.base_url}/chat/completions",
                        json=payload,
                        headers=self.headers,
                    )
                    response.raise_for_status()
                    return response.json()
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                error = APIError(
                    f"{status} {e.response.reason_phrase}: {e.response.text}",
                    status_code=status,
                    response_body=e.response.text,
                )
                if status not in RETRYABLE_STATUS:
                    raise error from e
                errors.append(error)
            except (httpx.ConnectError, httpx.TimeoutException) as e:
                errors.append(e)
            logger.warning(
                f"Request to {self.base_url} failed (attempt {attempt + 1}/{self.max_retries + 1}): {errors[-1]}"
            )

        raise RetryError(errors)

    def _to_response(self, data: dict[str, Any], request: GenerateRequest) -> GenerateResponse:
        # Parse OpenAI response format
        choices = data.get("choices") or [{}]
        choice = choices[0]
        message = choice.get("message", {}) or {}
        usage = data.get("usage", {}) or {}

        tool_calls = []
        for tc in message.get("tool_calls") or []:
            function = tc.get("function", {}) or {}
            tool_calls.append({
                "id": tc.get("id", ""),
                "type": "function",
                "function": {
                    "name": function.get("name", ""),
                    "arguments": function.get("arguments", "{}"),
                },
            })

        return GenerateResponse(
            content=message.get("content") or "",
            tokens_prompt=usage.get("prompt_tokens", 0),
            tokens_completion=usage.get("completion_tokens", 0),
            model=data.get("model", request.model),
            finish_reason=choice.get("finish_reason") or "stop",
            tool_calls=tool_calls,
            raw_response=data,
        )

    async def generate(self, request: GenerateRequest) -> GenerateResponse:
        """Generate a response without tool definitions."""
        data = await self._post_chat(self._payload(request))
        return self._to_response(data, request)

    async def generate_with_tools(
        self,
        request: GenerateRequest,
        tools: list[dict[str, Any]],
    ) -> GenerateResponse:
        """Generate a response with tool support.

        Args:
            request: The generation request
            tools: List of tools in OpenAI format

        Returns:
            GenerateResponse with tool_calls populated if model used tools
        """
        payload = self._payload(request)
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"

        data = await self._post_chat(payload)
        return self._to_response(data, request)

    async def health_check(self) -> bool:
        """Check if backend is available."""
        try:
            async with self._client(timeout=5) as client:
                response = await client.get(f"{self.base_url}/models", headers=self.headers)
                return response.status_code == 200
        except httpx.HTTPError as e:
            logger.debug(f"Health check failed: {e}")
            return False

    async def list_models(self) -> list[str]:
        """List available models."""
        try:
            async with self._client(timeout=5) as client:
                response = await client.get(f"{self.base_url}/models", headers=self.headers)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Listing models failed: {e}")
            return []

        # Handle both OpenAI format and llama.cpp format
        if "models" in data:
            return [m.get("name", m.get("id", "")) for m in data["models"]]
        if "data" in data:
            return [m.get("id", "") for m in data["data"]]
        return []
