"""Error types and provider-error classification.

Provider failures reach the agent in many shapes: structured HTTP errors
with a status and body, retry wrappers around the last failure, or bare
runtime errors whose only signal is their text. ``classify`` reduces all
of them to one ErrorCategory plus a single user-facing sentence, and
``looks_like_tool_unsupported`` decides whether a turn should be retried
without tool definitions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import json
import logging
import re
from typing import Any, Protocol, runtime_checkable

import httpx

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Stable categories for provider failures."""

    BAD_REQUEST = "bad_request"
    AUTH = "auth"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    RATE_LIMIT = "rate_limit"
    SERVER_ERROR = "server_error"
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    CONTEXT_TOO_LARGE = "context_too_large"
    TOOL_UNSUPPORTED = "tool_unsupported"
    """Provider rejected the request because of the tool definitions."""

    UNKNOWN = "unknown"


@dataclass
class ErrorClassification:
    """Category plus one user-facing sentence."""

    category: ErrorCategory
    message: str

    def __str__(self) -> str:
        return self.message


# =============================================================================
# Exceptions
# =============================================================================


class ToolwireError(Exception):
    """Base class for toolwire errors."""


class APIError(ToolwireError):
    """HTTP error returned by a provider, with status and raw body."""

    def __init__(self, message: str, status_code: int | None = None, response_body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class RetryError(ToolwireError):
    """All retry attempts failed; wraps every underlying failure."""

    def __init__(self, errors: list[BaseException], message: str | None = None):
        self.errors = list(errors)
        last = self.errors[-1] if self.errors else None
        super().__init__(message or f"Failed after {len(self.errors)} attempt(s): {last}")

    def unwrap(self) -> BaseException | None:
        """The most recent underlying failure."""
        return self.errors[-1] if self.errors else None


class ProviderError(ToolwireError):
    """A classified provider failure surfaced to the user."""

    def __init__(self, classification: ErrorClassification, cause: BaseException | None = None):
        super().__init__(classification.message)
        self.classification = classification
        self.cause = cause

    @property
    def category(self) -> ErrorCategory:
        return self.classification.category


class ToolUnsupportedError(ProviderError):
    """Provider does not accept tool definitions; retry without them."""


class ToolNotFoundError(ToolwireError):
    """Tool name is not in the registry."""

    def __init__(self, name: str):
        super().__init__(f"Tool not found: {name}")
        self.name = name


class ToolExecutionError(ToolwireError):
    """A tool ran but reported failure."""


@runtime_checkable
class Unwrappable(Protocol):
    """An error that wraps another, e.g. a retry aggregate."""

    def unwrap(self) -> BaseException | None:
        ...


def extract_root_cause(error: Any) -> Any:
    """Unwrap nested wrappers down to the innermost failure.

    Stops at the first non-wrapper, or at a wrapper with nothing inside.
    """
    seen: set[int] = set()
    while isinstance(error, Unwrappable) and id(error) not in seen:
        seen.add(id(error))
        inner = error.unwrap()
        if inner is None:
            break
        error = inner
    return error


# =============================================================================
# Classification
# =============================================================================

UNKNOWN_ERROR_MESSAGE = "An unknown error occurred while communicating with the model"

STATUS_RE = re.compile(
    r"(?:Error: )?\b(\d{3})\s+(?:\d{3}\s+)?(?:Bad Request|[^:]+):\s*(.+)",
    re.IGNORECASE,
)
BODY_MESSAGE_RE = re.compile(r"""["']?message["']?\s*[:=]\s*["']([^"']+)["']""", re.IGNORECASE)

UNMARSHAL_REMEDIATION = (
    "Ollama server error: The model returned malformed JSON. "
    "This usually indicates an issue with the Ollama server or model. "
    "Try:\n"
    "  1. Restart Ollama: systemctl restart ollama (Linux) or restart the Ollama app\n"
    "  2. Re-pull the model: ollama pull <model-name>\n"
    "  3. Check Ollama logs for more details\n"
    "  4. Try a different model to see if the issue is model-specific\n"
    "Original error: {error}"
)


def _from_status(status_code: int, detail: str) -> ErrorClassification:
    if status_code == 400:
        return ErrorClassification(ErrorCategory.BAD_REQUEST, f"Bad request: {detail}")
    if status_code == 401:
        return ErrorClassification(
            ErrorCategory.AUTH, "Authentication failed: Invalid API key or credentials"
        )
    if status_code == 403:
        return ErrorClassification(
            ErrorCategory.FORBIDDEN, "Access forbidden: Check your API permissions"
        )
    if status_code == 404:
        return ErrorClassification(
            ErrorCategory.NOT_FOUND,
            "Model not found: The requested model may not exist or is unavailable",
        )
    if status_code == 429:
        if "usage limit" in detail or "quota" in detail:
            return ErrorClassification(ErrorCategory.RATE_LIMIT, f"Rate limit: {detail}")
        return ErrorClassification(
            ErrorCategory.RATE_LIMIT,
            "Rate limit exceeded: Too many requests. Please wait and try again",
        )
    if status_code in (500, 502, 503):
        return ErrorClassification(ErrorCategory.SERVER_ERROR, f"Server error: {detail}")
    return ErrorClassification(ErrorCategory.UNKNOWN, f"Request failed ({status_code}): {detail}")


def _body_message(error: APIError) -> str:
    """Best human-readable message from a provider error body."""
    message = str(error)
    body = error.response_body
    if not body:
        return message

    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        match = BODY_MESSAGE_RE.search(body)
        return match.group(1) if match else message

    if isinstance(data, dict):
        inner = data.get("error")
        if isinstance(inner, dict) and inner.get("message"):
            return str(inner["message"])
        if data.get("message"):
            return str(data["message"])
    return message


def is_unmarshal_error(message: str) -> bool:
    """Signature of a local runtime failing to decode the model's JSON."""
    return "unmarshal" in message or (
        "invalid character" in message and "after top-level value" in message
    )


def classify(error: Any) -> ErrorClassification:
    """Map any provider failure to a category and a user-facing sentence.

    Structured API errors are mapped by status. Everything else is matched
    on its message in fixed order: embedded status line, JSON-unmarshal
    signature, timeout, connection, context length, token limit, and
    finally the first line of the message itself.
    """
    root = extract_root_cause(error)
    if not isinstance(root, BaseException):
        return ErrorClassification(ErrorCategory.UNKNOWN, UNKNOWN_ERROR_MESSAGE)

    if isinstance(root, APIError) and root.status_code:
        return _from_status(root.status_code, _body_message(root))

    message = str(root)
    lower = message.lower()

    status_match = STATUS_RE.search(message)
    if status_match:
        return _from_status(int(status_match.group(1)), status_match.group(2).strip())

    if is_unmarshal_error(message):
        return ErrorClassification(
            ErrorCategory.SERVER_ERROR, UNMARSHAL_REMEDIATION.format(error=message)
        )

    if isinstance(root, (httpx.TimeoutException, TimeoutError)) or "timeout" in lower or "etimedout" in lower:
        return ErrorClassification(
            ErrorCategory.TIMEOUT, "Request timed out: The model took too long to respond"
        )

    if isinstance(root, (httpx.ConnectError, ConnectionError)) or "econnrefused" in lower or "connect" in lower:
        return ErrorClassification(
            ErrorCategory.CONNECTION, "Connection failed: Unable to reach the model server"
        )

    if "context length" in lower or "too many tokens" in lower:
        return ErrorClassification(
            ErrorCategory.CONTEXT_TOO_LARGE,
            "Context too large: Please reduce the conversation length or message size",
        )

    if "reduce the number of tokens" in lower:
        return ErrorClassification(
            ErrorCategory.CONTEXT_TOO_LARGE,
            "Too many tokens: Please shorten your message or clear conversation history",
        )

    fallback = re.sub(r"^Error:\s*", "", message, flags=re.IGNORECASE).split("\n")[0]
    return ErrorClassification(ErrorCategory.UNKNOWN, fallback or UNKNOWN_ERROR_MESSAGE)


# =============================================================================
# Tool-support detection
# =============================================================================

BAD_REQUEST_RE = re.compile(r"\b400\b|bad request", re.IGNORECASE)
BAD_REQUEST_TOOL_KEYWORDS = (
    "tool",
    "function",
    "invalid parameter",
    "unexpected field",
    "unrecognized",
)
TOOL_UNSUPPORTED_PHRASES = [
    re.compile(
        r"\b(?:tools?|functions?)(?:\s+calling)?\s+(?:(?:is|are)\s+)?(?:not\s+supported|unsupported)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\binvalid\s+(?:tools?|functions?)\b", re.IGNORECASE),
    re.compile(r"\b(?:tool|function)\s+parameters?\s+invalid\b", re.IGNORECASE),
]


def looks_like_tool_unsupported(error: Any) -> bool:
    """Heuristic: did the provider reject the request because of tools?

    A 400 counts only with tool-related evidence, so a bare malformed-JSON
    400 is not treated as a tool problem.
    """
    root = extract_root_cause(error)
    if not isinstance(root, BaseException):
        return False

    message = str(root)
    if isinstance(root, APIError) and root.response_body:
        message = f"{message} {root.response_body}"
    lower = message.lower()

    has_bad_request = bool(BAD_REQUEST_RE.search(message)) or (
        isinstance(root, APIError) and root.status_code == 400
    )
    if has_bad_request and any(keyword in lower for keyword in BAD_REQUEST_TOOL_KEYWORDS):
        return True

    if any(pattern.search(message) for pattern in TOOL_UNSUPPORTED_PHRASES):
        return True

    return is_unmarshal_error(lower)
