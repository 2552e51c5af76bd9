"""Core agent logic for toolwire.

The agent ties together:
- Prompt assembly (system prompt, text-mode tool description, progress)
- LLM generation, with fallback to text-mode tools
- Tool-call extraction from native fields or reply text
- The tool execution orchestrator, which re-enters ``run_turn`` once a
  batch of results has been folded into the history
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path

import httpx

from toolwire.backends import Backend, GenerateRequest, GenerateResponse, OpenAICompatBackend
from toolwire.config import Config
from toolwire.errors import (
    ErrorCategory,
    ErrorClassification,
    ProviderError,
    ToolUnsupportedError,
    ToolwireError,
    classify,
    looks_like_tool_unsupported,
)
from toolwire.format import OpenAINativeParser, ToolCall, ToolCallExtractor, ToolResult, deduplicate_tool_calls
from toolwire.messages import AssistantMessage, Message, SystemMessage, UserMessage, messages_to_dicts
from toolwire.orchestrator import (
    CANCELLED_NOTICE,
    ApprovalChannel,
    AutoApproval,
    BatchSnapshot,
    BatchState,
    NullRenderer,
    Renderer,
    ToolExecutionOrchestrator,
)
from toolwire.prompt import format_tools_for_prompt, load_system_prompt
from toolwire.sanitizer import sanitize
from toolwire.session import Session, TurnUsage
from toolwire.tools import ToolRegistry

logger = logging.getLogger(__name__)

MALFORMED_FEEDBACK = (
    "Your previous response contained a malformed tool call. {error}\n\n"
    "{examples}\n\n"
    "Please try again using the correct format."
)
NUDGE_AFTER_TOOLS = "Please provide a summary or response based on the tool results above."
NUDGE_CONTINUE = "Please continue with the task."
TEXT_MODE_NOTICE = "Provider rejected tool definitions; describing tools in the prompt instead."


@dataclass
class AgentResponse:
    """Outcome of one user question."""

    content: str
    model: str
    tokens_prompt: int = 0
    tokens_completion: int = 0
    tool_results: list[ToolResult] = field(default_factory=list)
    turns: int = 0
    cancelled: bool = False


class Agent:
    """Single-conversation agent driving the tool-calling loop.

    The agent is the orchestrator's continuation handler: when a batch of
    calls has finished, ``continue_conversation`` runs the next turn.
    """

    def __init__(
        self,
        config: Config,
        backend: Backend | None = None,
        registry: ToolRegistry | None = None,
        approval: ApprovalChannel | None = None,
        renderer: Renderer | None = None,
    ):
        self.config = config

        self.backend = backend or OpenAICompatBackend(
            base_url=config.backend.url,
            api_key=config.backend.api_key or None,
            timeout=config.backend.timeout,
            temperature=config.backend.temperature,
            model=config.agent.model,
            max_retries=config.backend.max_retries,
        )

        self.tools = registry or ToolRegistry(
            allowed_roots=config.tools.allowed_roots,
            enable_bash=config.tools.enable_bash,
            command_timeout=config.tools.command_timeout,
            command_blacklist=config.tools.command_blacklist,
        )

        self.extractor = ToolCallExtractor()
        self.native_parser = OpenAINativeParser()
        self.renderer = renderer or NullRenderer()

        if config.tools.auto_approve or approval is None:
            approval = AutoApproval()
        self.orchestrator = ToolExecutionOrchestrator(
            executor=self.tools,
            approval=approval,
            continuation=self,
            renderer=self.renderer,
            requires_approval=self.tools.requires_confirmation,
        )

        prompts_dir = Path(config.agent.prompts_dir).expanduser() if config.agent.prompts_dir else None
        self.base_system_prompt = load_system_prompt(
            config.agent.model,
            prompts_dir=prompts_dir,
            override=config.agent.system_prompt,
        )

    def new_session(self) -> Session:
        return Session(model=self.config.agent.model, native_tools=self.config.tools.native_tools)

    # -- public entry points ------------------------------------------------

    async def ask(self, session: Session, question: str) -> AgentResponse:
        """Ask the agent a question and run turns until it answers.

        Raises:
            ProviderError: If the model request fails
            RuntimeError: If the session still has a pending tool batch
        """
        if session.has_pending_batch:
            raise RuntimeError(f"Session {session.id} has a pending tool batch")

        session.tracker.start(question)
        session.usage = TurnUsage()
        session.last_response = ""
        # Only the batches of the current question are kept
        session.batch_history.clear()

        session.add_message(UserMessage(content=question))
        await self.run_turn(session)

        batches = session.batch_history
        cancelled = bool(batches) and batches[-1].state is BatchState.CANCELLED
        results = [r for batch in batches for r in batch.completed_results]

        return AgentResponse(
            content=CANCELLED_NOTICE if cancelled else session.last_response,
            model=session.model or self.config.agent.model,
            tokens_prompt=session.usage.tokens_prompt,
            tokens_completion=session.usage.tokens_completion,
            tool_results=results,
            turns=session.usage.turns,
            cancelled=cancelled,
        )

    async def continue_conversation(self, session: Session, history: list[Message]) -> None:
        """Run the next turn after a tool batch has been folded into history."""
        session.replace_history(history)
        await self.run_turn(session)

    async def run_turn(self, session: Session) -> None:
        """Request completions until the model answers or hands off a batch.

        A tool batch hands control to the orchestrator, whose continuation
        re-enters this method; when that returns, so does this call.
        """
        limits = self.config.agent
        while True:
            if session.usage.turns >= limits.max_turns:
                logger.warning(f"Stopping after {limits.max_turns} turn(s) for session {session.id}")
                if not session.last_response:
                    session.last_response = f"Stopped after {limits.max_turns} turns without a final answer."
                return
            session.usage.turns += 1

            session.replace_history(sanitize(session.messages))
            response = await self._generate(session)
            session.usage.tokens_prompt += response.tokens_prompt
            session.usage.tokens_completion += response.tokens_completion

            native_calls = self._native_calls(response)
            outcome = self.extractor.parse(response.content)

            if not outcome.success and not native_calls:
                if session.usage.malformed_retries >= limits.max_malformed_retries:
                    logger.warning("Giving up on malformed tool calls; returning the reply as-is")
                    self._finish(session, response.content)
                    return
                session.usage.malformed_retries += 1
                logger.info(f"Malformed tool call, asking for a retry: {outcome.error}")
                session.add_message(AssistantMessage(content=response.content))
                session.add_message(UserMessage(
                    content=MALFORMED_FEEDBACK.format(error=outcome.error, examples=outcome.examples)
                ))
                continue

            cleaned = outcome.cleaned_content if outcome.success else response.content
            if native_calls:
                calls, native = native_calls, True
            else:
                calls, native = outcome.tool_calls, False

            if not calls:
                content = cleaned.strip()
                if content:
                    self._finish(session, content)
                    return
                if session.usage.nudges >= limits.max_nudges:
                    logger.warning("Model keeps returning empty replies")
                    self._finish(session, "")
                    return
                session.usage.nudges += 1
                progress = session.tracker.progress
                after_tools = progress is not None and progress.tool_calls_executed > 0
                session.add_message(UserMessage(content=NUDGE_AFTER_TOOLS if after_tools else NUDGE_CONTINUE))
                continue

            await self._dispatch(session, calls, cleaned, native)
            return

    async def health_check(self) -> dict[str, bool]:
        """Check health of the backend."""
        return {"backend": await self.backend.health_check()}

    # -- internals ----------------------------------------------------------

    def system_prompt(self, session: Session) -> str:
        """System prompt for the next request on ``session``."""
        prompt = self.base_system_prompt
        if not session.native_tools:
            prompt += format_tools_for_prompt(self.tools.list_tools())

        progress = session.tracker.progress
        if progress is not None and progress.tool_calls_executed:
            prompt += "\n\n" + session.tracker.continuation_prompt()
        return prompt

    def _request(self, session: Session) -> GenerateRequest:
        return GenerateRequest(
            messages=messages_to_dicts(session.messages),
            system=self.system_prompt(session),
            model=session.model or self.config.agent.model,
            temperature=self.config.backend.temperature,
            max_tokens=self.config.backend.max_tokens,
        )

    async def _generate(self, session: Session) -> GenerateResponse:
        """One model request, falling back to text-mode tools if rejected.

        Raises:
            ProviderError: Classified failure of the request
        """
        if session.native_tools:
            try:
                return await self._generate_with_tools(session)
            except ToolUnsupportedError as e:
                logger.warning(f"Retrying without tool definitions: {e.cause}")
                session.native_tools = False
                self.renderer.notify(TEXT_MODE_NOTICE)

        try:
            return await self.backend.generate(self._request(session))
        except (ToolwireError, httpx.HTTPError, ValueError) as e:
            raise ProviderError(classify(e), e) from e

    async def _generate_with_tools(self, session: Session) -> GenerateResponse:
        try:
            return await self.backend.generate_with_tools(
                self._request(session), self.tools.to_openai_tools()
            )
        except (ToolwireError, httpx.HTTPError, ValueError) as e:
            if looks_like_tool_unsupported(e):
                raise ToolUnsupportedError(
                    ErrorClassification(
                        ErrorCategory.TOOL_UNSUPPORTED,
                        "The model or provider does not support native tool calling",
                    ),
                    e,
                ) from e
            raise ProviderError(classify(e), e) from e

    def _native_calls(self, response: GenerateResponse) -> list[ToolCall]:
        if not response.tool_calls:
            return []
        raw = response.raw_response or {"tool_calls": response.tool_calls}
        calls = [c for c in self.native_parser.parse(raw).tool_calls if c.id and c.name]
        return deduplicate_tool_calls(calls)

    async def _dispatch(self, session: Session, calls: list[ToolCall], cleaned: str, native: bool) -> None:
        content = cleaned.strip()
        assistant = AssistantMessage(content=content or None, tool_calls=calls)
        snapshot = BatchSnapshot(
            messages_before_batch=list(session.messages),
            assistant_message=assistant,
            system_message=SystemMessage(content=self.system_prompt(session)),
        )
        if content:
            self.renderer.render_assistant(content)

        self.orchestrator.start_batch(session, calls, snapshot, native=native)
        await self.orchestrator.run_batch(session)

    def _finish(self, session: Session, content: str) -> None:
        # The caller displays the final answer itself
        if content:
            session.add_message(AssistantMessage(content=content))
        session.last_response = content
