"""Approval and execution of the tool calls from one assistant turn.

A batch moves through these states::

    CONFIRMING(i) -> EXECUTING(i) -> CONFIRMING(i+1) ... -> CONTINUING
    CONFIRMING(i) -> CANCELLED

Calls run strictly in order, one at a time. A rejected call cancels the
rest of the batch and leaves the session history exactly as it was before
the batch started. When every call has a result, the history is rebuilt
and handed to the continuation collaborator, which starts the next turn.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from toolwire.format.adapters import OpenAIResultAdapter, TextResultAdapter
from toolwire.format.protocols import ToolResultAdapter
from toolwire.format.types import ToolCall, ToolResult
from toolwire.messages import AssistantMessage, Message, SystemMessage
from toolwire.sanitizer import is_empty_assistant_message

if TYPE_CHECKING:
    from toolwire.session import Session

logger = logging.getLogger(__name__)

CANCELLED_NOTICE = "Tool execution cancelled by user"


class BatchState(Enum):
    CONFIRMING = "confirming"
    EXECUTING = "executing"
    CONTINUING = "continuing"
    CANCELLED = "cancelled"


@dataclass
class BatchSnapshot:
    """History as it stood when the assistant turn produced the calls."""

    messages_before_batch: list[Message]
    assistant_message: AssistantMessage
    system_message: SystemMessage | None = None


@dataclass
class PendingToolBatch:
    """Tool calls from one assistant turn, processed in order."""

    calls: list[ToolCall]
    snapshot: BatchSnapshot
    # True when the calls arrived in the provider's native tool_calls field
    native: bool = False
    current_index: int = 0
    completed_results: list[ToolResult] = field(default_factory=list)
    state: BatchState = BatchState.CONFIRMING

    @property
    def current_call(self) -> ToolCall | None:
        if self.current_index < len(self.calls):
            return self.calls[self.current_index]
        return None

    @property
    def finished(self) -> bool:
        return self.state in (BatchState.CONTINUING, BatchState.CANCELLED)


# =============================================================================
# Collaborators
# =============================================================================


@runtime_checkable
class ApprovalChannel(Protocol):
    """Asks the user whether a call may run."""

    async def approve(self, call: ToolCall) -> bool:
        ...


@runtime_checkable
class ToolExecutor(Protocol):
    """Runs a tool call and returns the text the model should see.

    May raise; the orchestrator turns any exception into a failed result.
    """

    async def execute(self, call: ToolCall) -> str:
        ...


@runtime_checkable
class ToolValidator(Protocol):
    """Pre-flight check for a call.

    Returns an error message to fail the call without running it, or None.
    """

    async def validate(self, call: ToolCall) -> str | None:
        ...


@runtime_checkable
class ContinuationHandler(Protocol):
    """Re-enters the turn loop once a batch has been folded into history."""

    async def continue_conversation(self, session: Session, history: list[Message]) -> None:
        ...


@runtime_checkable
class Renderer(Protocol):
    """Display side effects. The orchestrator never builds UI itself."""

    def render_assistant(self, content: str) -> None:
        ...

    def render_result(self, call: ToolCall, result: ToolResult) -> None:
        ...

    def notify(self, message: str) -> None:
        ...


class AutoApproval:
    """Approves every call (non-interactive runs, --yes)."""

    async def approve(self, call: ToolCall) -> bool:
        return True


class NullRenderer:
    """Renderer that discards everything."""

    def render_assistant(self, content: str) -> None:
        pass

    def render_result(self, call: ToolCall, result: ToolResult) -> None:
        pass

    def notify(self, message: str) -> None:
        pass


# =============================================================================
# Orchestrator
# =============================================================================


class ToolExecutionOrchestrator:
    """Drives approval, execution and continuation for a session's batch."""

    def __init__(
        self,
        executor: ToolExecutor,
        approval: ApprovalChannel | None = None,
        continuation: ContinuationHandler | None = None,
        renderer: Renderer | None = None,
        validator: ToolValidator | None = None,
        requires_approval: Callable[[ToolCall], bool] | None = None,
    ):
        self.executor = executor
        self.approval = approval or AutoApproval()
        self.continuation = continuation
        self.renderer = renderer or NullRenderer()
        if validator is None and isinstance(executor, ToolValidator):
            validator = executor
        self.validator = validator
        self.requires_approval = requires_approval or (lambda call: True)
        self.tool_messages: ToolResultAdapter = OpenAIResultAdapter()
        self.text_results = TextResultAdapter()

    # -- state transitions --------------------------------------------------

    def start_batch(
        self,
        session: Session,
        calls: list[ToolCall],
        snapshot: BatchSnapshot,
        native: bool = False,
    ) -> PendingToolBatch:
        """Begin a batch at CONFIRMING(0).

        Raises:
            ValueError: If ``calls`` is empty
            RuntimeError: If the session already has an unfinished batch
        """
        if not calls:
            raise ValueError("A tool batch needs at least one call")
        if session.pending_batch is not None and not session.pending_batch.finished:
            raise RuntimeError(f"Session {session.id} already has a pending tool batch")

        batch = PendingToolBatch(calls=list(calls), snapshot=snapshot, native=native)
        session.pending_batch = batch
        logger.info(f"Started tool batch of {len(calls)} call(s) for session {session.id}")
        return batch

    async def confirm(self, session: Session, approved: bool) -> BatchState:
        """Apply the user's decision for the current call."""
        batch = self._require(session, BatchState.CONFIRMING)

        if not approved:
            batch.state = BatchState.CANCELLED
            session.pending_batch = None
            session.batch_history.append(batch)
            self.renderer.notify(CANCELLED_NOTICE)
            logger.info(
                f"Tool batch cancelled at call {batch.current_index + 1}/{len(batch.calls)}"
            )
            return batch.state

        batch.state = BatchState.EXECUTING
        return batch.state

    async def execute_current(self, session: Session) -> ToolResult:
        """Run the approved call, record its result and advance."""
        batch = self._require(session, BatchState.EXECUTING)
        call = self._current_call(batch)

        result = await self._run_call(call)
        batch.completed_results.append(result)
        session.tracker.after_tool_execution(call, result.content)
        self.renderer.render_result(call, result)

        batch.current_index += 1
        if batch.current_call is not None:
            batch.state = BatchState.CONFIRMING
        else:
            batch.state = BatchState.CONTINUING
            await self._continue(session, batch)
        return result

    async def run_batch(self, session: Session) -> BatchState:
        """Process the pending batch until it continues or is cancelled."""
        batch = session.pending_batch
        if batch is None:
            raise RuntimeError(f"Session {session.id} has no pending tool batch")

        while batch.state is BatchState.CONFIRMING:
            call = self._current_call(batch)
            approved = True
            if self.requires_approval(call):
                approved = await self._ask_approval(call)
            state = await self.confirm(session, approved)
            if state is BatchState.CANCELLED:
                break
            await self.execute_current(session)
        return batch.state

    # -- internals ----------------------------------------------------------

    def _require(self, session: Session, state: BatchState) -> PendingToolBatch:
        batch = session.pending_batch
        if batch is None:
            raise RuntimeError(f"Session {session.id} has no pending tool batch")
        if batch.state is not state:
            raise RuntimeError(f"Tool batch is {batch.state.value}, expected {state.value}")
        return batch

    def _current_call(self, batch: PendingToolBatch) -> ToolCall:
        call = batch.current_call
        if call is None:
            raise RuntimeError(f"Tool batch has no call at index {batch.current_index}")
        return call

    async def _ask_approval(self, call: ToolCall) -> bool:
        """A failing approval channel counts as a rejection."""
        try:
            return await self.approval.approve(call)
        except Exception as e:
            logger.warning(f"Approval failed for {call.name}, cancelling batch: {e!r}")
            return False

    async def _run_call(self, call: ToolCall) -> ToolResult:
        """Validate then execute one call. Never raises."""
        if self.validator is not None:
            try:
                problem = await self.validator.validate(call)
            except Exception as e:
                message = f"Validation error: {e}"
                logger.warning(f"Validator raised for {call.name}: {e}")
                return ToolResult(call_id=call.id, tool_name=call.name, content=message, error=message)
            if problem:
                logger.info(f"Validation failed for {call.name}: {problem}")
                return ToolResult(call_id=call.id, tool_name=call.name, content=problem, error=problem)

        try:
            output = await self.executor.execute(call)
        except Exception as e:
            logger.warning(f"Tool {call.name} failed: {e}")
            return ToolResult(
                call_id=call.id,
                tool_name=call.name,
                content=f"Error: {e}",
                error=str(e) or e.__class__.__name__,
            )
        return ToolResult(call_id=call.id, tool_name=call.name, content=output)

    def build_history(self, batch: PendingToolBatch) -> list[Message]:
        """Fold a finished batch back into the conversation history.

        Native batches keep the assistant tool_calls and answer with one tool
        message per call. Text-recovered batches drop the tool_calls and
        report all results as a single assistant message.
        """
        snapshot = batch.snapshot
        history: list[Message] = list(snapshot.messages_before_batch)
        results_by_id = {r.call_id: r for r in batch.completed_results}

        if batch.native:
            history.append(snapshot.assistant_message)
            for call in batch.calls:
                result = results_by_id.get(call.id)
                if result is not None:
                    history.append(self.tool_messages.format_result(call, result))
            return history

        assistant = snapshot.assistant_message.without_tool_calls()
        if not is_empty_assistant_message(assistant):
            history.append(assistant)
        history.append(self.text_results.format_results(batch.calls, batch.completed_results))
        return history

    async def _continue(self, session: Session, batch: PendingToolBatch) -> None:
        history = self.build_history(batch)
        session.replace_history(history)
        session.pending_batch = None
        session.batch_history.append(batch)
        logger.debug(f"Tool batch complete, history now {len(history)} message(s)")

        if self.continuation is not None:
            await self.continuation.continue_conversation(session, history)
