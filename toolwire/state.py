"""Progress tracking across a multi-step tool-using task.

The tracker keeps a rough step count, a short memory of recent actions and
a repetition flag, and renders them into a continuation prompt that keeps
small models oriented between tool rounds. Its output is advisory text
only; nothing here steers control flow.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
import logging
import math
import re

from toolwire.format.types import ToolCall

logger = logging.getLogger(__name__)

MAX_RECENT_TOOL_CALLS = 5
MAX_COMPLETED_ACTIONS = 10

GREETINGS = (
    "hi",
    "hello",
    "hey",
    "hiya",
    "howdy",
    "good morning",
    "good afternoon",
    "good evening",
    "what's up",
    "whats up",
    "sup",
    "yo",
)

# (keywords, estimated steps), first match wins
STEP_BUCKETS = (
    (("create", "build", "implement"), 5),
    (("fix", "debug", "troubleshoot"), 4),
    (("analyze", "understand", "explain"), 3),
    (("read", "show", "list"), 2),
)

NEXT_STEP_SUGGESTIONS = {
    "read_file": "Based on the file contents, determine what changes or analysis are needed.",
    "execute_bash": "Review the command output and decide on the next action.",
    "create_file": "Consider testing or verifying the file you just created.",
    "write_file": "Consider testing or verifying the file you just created.",
    "edit_file": "Consider testing the changes or making additional modifications.",
    "edit_block": "Consider testing the changes or making additional modifications.",
}
DEFAULT_SUGGESTION = "Use the tool result to inform your next action."
NO_TOOL_SUGGESTION = "Consider what information you need to gather first."
NEAR_COMPLETION_HINT = "You're near completion - focus on finalizing and testing."
REPETITION_WARNING = (
    "Warning: You may be repeating a similar action. "
    "Consider a different approach or move to the next step."
)


@dataclass
class ConversationProgress:
    """Progress of the current task, owned by one session."""

    original_task: str
    current_step: int = 1
    total_estimated_steps: int = 3
    completed_actions: deque[str] = field(
        default_factory=lambda: deque(maxlen=MAX_COMPLETED_ACTIONS)
    )
    last_tool_call: ToolCall | None = None
    is_repeating_action: bool = False
    tool_calls_executed: int = 0


def is_simple_greeting(message: str) -> bool:
    """True for short pleasantries like "hi!" that are not real tasks."""
    clean = re.sub(r"[!?.,\s]+$", "", message.lower().strip())
    if clean in GREETINGS:
        return True
    return len(clean) <= 10 and any(greeting in clean for greeting in GREETINGS)


def estimate_steps(task: str) -> int:
    """Rough step estimate from task keywords, else from task length."""
    lower = task.lower()
    for keywords, steps in STEP_BUCKETS:
        if any(keyword in lower for keyword in keywords):
            return steps
    return max(3, min(8, math.ceil(len(task) / 50)))


def describe_tool_action(call: ToolCall) -> str:
    """One-line description of what a tool call did."""
    args = call.arguments

    def _target() -> str:
        for key in ("filename", "path"):
            if isinstance(args.get(key), str):
                return args[key]
        return "unknown"

    if call.name == "read_file":
        return f"Read file: {_target()}"
    if call.name in ("write_file", "create_file"):
        return f"Created/wrote file: {_target()}"
    if call.name in ("edit_file", "edit_block"):
        return f"Edited file: {_target()}"
    if call.name == "execute_bash":
        command = args.get("command")
        command = command if isinstance(command, str) else ""
        suffix = "..." if len(command) > 50 else ""
        return f"Executed command: {command[:50]}{suffix}"
    return f"Used {call.name}"


class ConversationStateTracker:
    """Tracks step count, recent actions and repetition for one session."""

    def __init__(self) -> None:
        self.progress: ConversationProgress | None = None
        self.recent_tool_calls: deque[ToolCall] = deque(maxlen=MAX_RECENT_TOOL_CALLS)

    @property
    def active(self) -> bool:
        return self.progress is not None

    def start(self, task: str) -> ConversationProgress:
        """Reset progress for a new task."""
        total = 1 if is_simple_greeting(task) else estimate_steps(task)
        self.progress = ConversationProgress(original_task=task, total_estimated_steps=total)
        self.recent_tool_calls.clear()
        logger.debug(f"Tracking new task, estimated {total} step(s)")
        return self.progress

    def reset(self) -> None:
        self.progress = None
        self.recent_tool_calls.clear()

    def after_tool_execution(self, call: ToolCall, result_summary: str = "") -> None:
        """Record one executed call and advance the step counter."""
        if self.progress is None:
            return
        progress = self.progress

        # Compare against calls made before this one
        signature = call.signature()
        repeating = any(
            previous.signature() == signature for previous in list(self.recent_tool_calls)[-2:]
        )
        self.recent_tool_calls.append(call)

        progress.tool_calls_executed += 1
        progress.last_tool_call = call
        progress.is_repeating_action = repeating
        progress.current_step += 1
        progress.completed_actions.append(describe_tool_action(call))

        if progress.current_step > progress.total_estimated_steps:
            progress.total_estimated_steps = progress.current_step + 2

        if repeating:
            logger.info(f"Repeated tool call detected: {call.name}")

    def next_step_suggestion(self) -> str:
        progress = self.progress
        if progress is None or progress.last_tool_call is None:
            return NO_TOOL_SUGGESTION

        suggestions = [
            NEXT_STEP_SUGGESTIONS.get(progress.last_tool_call.name, DEFAULT_SUGGESTION)
        ]
        if progress.current_step / progress.total_estimated_steps > 0.7:
            suggestions.append(NEAR_COMPLETION_HINT)
        return " ".join(suggestions)

    def continuation_prompt(self) -> str:
        """Render progress as context for the next model turn.

        Empty when no task is being tracked.
        """
        progress = self.progress
        if progress is None:
            return ""

        lines = [
            f"[Task Progress: Step {progress.current_step} of ~{progress.total_estimated_steps}]",
            f'[Original Task: "{progress.original_task}"]',
            "",
        ]

        if progress.completed_actions:
            lines.append("Recent actions completed:")
            recent = list(progress.completed_actions)[-3:]
            lines.extend(f"{i}. {action}" for i, action in enumerate(recent, start=1))
            lines.append("")

        if progress.is_repeating_action:
            lines.extend([REPETITION_WARNING, ""])

        lines.extend([self.next_step_suggestion(), ""])
        lines.append(f'Continue working toward completing: "{progress.original_task}"')
        return "\n".join(lines)
