"""Per-conversation session state.

A Session is the explicit handle every orchestrator and tracker call
receives. It owns the message history, the progress tracker and at most
one pending tool batch, so independent conversations never share state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any
import uuid

from toolwire.messages import Message
from toolwire.state import ConversationStateTracker

if TYPE_CHECKING:
    from toolwire.orchestrator import PendingToolBatch


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class TurnUsage:
    """Counters for one user question, reset by each ask."""

    turns: int = 0
    malformed_retries: int = 0
    nudges: int = 0
    tokens_prompt: int = 0
    tokens_completion: int = 0


@dataclass
class Session:
    """A conversation session."""

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    model: str = ""
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)
    messages: list[Message] = field(default_factory=list)
    tracker: ConversationStateTracker = field(default_factory=ConversationStateTracker)
    pending_batch: PendingToolBatch | None = None
    # Finished batches of the current question; cleared by each ask
    batch_history: list[PendingToolBatch] = field(default_factory=list)
    usage: TurnUsage = field(default_factory=TurnUsage)
    # Cleared after a provider rejects tool definitions
    native_tools: bool = True
    # Final assistant text of the last completed turn
    last_response: str = ""

    def add_message(self, message: Message) -> None:
        self.messages.append(message)
        self.updated_at = _now()

    def replace_history(self, messages: list[Message]) -> None:
        self.messages = list(messages)
        self.updated_at = _now()

    @property
    def has_pending_batch(self) -> bool:
        return self.pending_batch is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "model": self.model,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "messages": [m.to_dict() for m in self.messages],
        }
