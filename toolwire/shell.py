"""Shell command execution for the execute_bash tool.

Commands run through ``bash -c`` in the workspace directory with a
timeout. A small blacklist blocks obviously destructive binaries; the
per-call approval prompt is the real safeguard.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from pathlib import Path
import shlex

from toolwire.errors import ToolExecutionError

logger = logging.getLogger(__name__)

DEFAULT_BLACKLIST: list[str] = ["sudo", "su", "mkfs", "shutdown", "reboot"]
MAX_OUTPUT_CHARS = 20_000


class CommandSecurityError(ToolExecutionError):
    """Raised when command execution is denied for security reasons."""


@dataclass
class ExecResult:
    """Result from command execution."""

    stdout: str
    stderr: str
    exit_code: int

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def render(self) -> str:
        """Text the model sees for this command."""
        parts = [f"Exit code: {self.exit_code}"]
        if self.stdout:
            parts.append(f"STDOUT:\n{_truncate(self.stdout)}")
        if self.stderr:
            parts.append(f"STDERR:\n{_truncate(self.stderr)}")
        return "\n".join(parts)


def _truncate(text: str) -> str:
    if len(text) <= MAX_OUTPUT_CHARS:
        return text
    return text[:MAX_OUTPUT_CHARS] + f"\n[...truncated, {len(text) - MAX_OUTPUT_CHARS} more chars...]"


def validate_command(command: str, blacklist: list[str]) -> str:
    """Return the command's first binary name if it is allowed.

    Raises:
        CommandSecurityError: If the command is empty, unparsable or blocked
    """
    if not command or not command.strip():
        raise CommandSecurityError("Empty command")
    try:
        parts = shlex.split(command)
    except ValueError as e:
        raise CommandSecurityError(f"Invalid command syntax: {e}") from e
    if not parts:
        raise CommandSecurityError("Empty command")

    binary = Path(parts[0]).name
    if binary in blacklist:
        raise CommandSecurityError(f"Binary '{binary}' is blacklisted. Blocked: {blacklist}")
    return binary


async def run_command(
    command: str,
    cwd: Path | str = ".",
    timeout: float = 60,
    blacklist: list[str] | None = None,
) -> ExecResult:
    """Execute ``command`` with ``bash -c``.

    Raises:
        CommandSecurityError: If the command is rejected
        ToolExecutionError: If it times out
    """
    binary = validate_command(command, DEFAULT_BLACKLIST if blacklist is None else blacklist)
    logger.debug(f"Running command: {binary}")

    proc = await asyncio.create_subprocess_exec(
        "bash",
        "-c",
        command,
        cwd=str(Path(cwd).resolve()),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError as e:
        proc.kill()
        await proc.wait()
        raise ToolExecutionError(f"Command timed out after {timeout}s") from e

    return ExecResult(
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
        exit_code=proc.returncode if proc.returncode is not None else -1,
    )
