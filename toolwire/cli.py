"""toolwire CLI entry point.

One-shot mode answers a single prompt; without a prompt on a terminal the
CLI runs an interactive loop over one session.
"""

from __future__ import annotations

import asyncio
import json
import sys

import click
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm

from toolwire import __version__
from toolwire.agent import Agent, AgentResponse
from toolwire.config import Config, load_config
from toolwire.errors import ErrorCategory, ProviderError
from toolwire.format.types import ToolCall, ToolResult
from toolwire.logging_utils import setup_logging
from toolwire.session import Session

console = Console(stderr=True)  # Metadata to stderr
stdout_console = Console()  # Main output to stdout

EXIT_COMMANDS = {"exit", "quit", ":q"}
MAX_RESULT_PREVIEW = 1500


class RichApproval:
    """Asks for confirmation on the terminal before a tool runs."""

    def __init__(self, console: Console):
        self.console = console

    async def approve(self, call: ToolCall) -> bool:
        args = json.dumps(call.arguments, indent=2, default=str)
        self.console.print(Panel(args, title=f"[bold yellow]{call.name}[/bold yellow]", expand=False))
        # Confirm.ask blocks on stdin
        return await asyncio.to_thread(Confirm.ask, "Run this tool?", console=self.console, default=True)


class DeclineApproval:
    """Declines calls that need confirmation when no terminal is attached."""

    async def approve(self, call: ToolCall) -> bool:
        console.print(f"[yellow]Declined {call.name}: no terminal for confirmation (use --yes)[/yellow]")
        return False


class RichRenderer:
    """Shows intermediate assistant text and tool results."""

    def __init__(self, console: Console, quiet: bool = False):
        self.console = console
        self.quiet = quiet

    def render_assistant(self, content: str) -> None:
        if not self.quiet:
            self.console.print(f"[green]assistant:[/green] {content}")

    def render_result(self, call: ToolCall, result: ToolResult) -> None:
        if self.quiet:
            return
        body = result.content
        if len(body) > MAX_RESULT_PREVIEW:
            body = body[:MAX_RESULT_PREVIEW] + "\n[...]"
        style = "green" if result.success else "red"
        self.console.print(Panel(body, title=f"[{style}]{call.name}[/{style}]", expand=False))

    def notify(self, message: str) -> None:
        self.console.print(f"[yellow]{message}[/yellow]")


@click.command()
@click.argument("prompt", required=False)
@click.option("--model", help="Override model")
@click.option("--url", help="Override backend URL")
@click.option("--config", "config_path", help="Config file path")
@click.option("--yes", "-y", "auto_approve", is_flag=True, help="Run tools without asking")
@click.option("--no-native-tools", is_flag=True, help="Describe tools in the prompt instead of the API")
@click.option("--json", "json_output", is_flag=True, help="JSON output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress metadata")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.option("--status", is_flag=True, help="Show status")
@click.option("--version", is_flag=True, help="Show version")
def main(
    prompt: str | None,
    model: str | None,
    url: str | None,
    config_path: str | None,
    auto_approve: bool,
    no_native_tools: bool,
    json_output: bool,
    quiet: bool,
    verbose: bool,
    status: bool,
    version: bool,
) -> None:
    """toolwire - terminal coding agent.

    \b
    Examples:
        toolwire "add a docstring to utils.py"     One-shot task
        toolwire                                   Interactive session
        toolwire --no-native-tools "list files"    Text-mode tool calling
    """
    if version:
        click.echo(f"toolwire v{__version__}")
        return

    try:
        config = load_config(config_path)
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)

    # Apply CLI overrides
    if model:
        config.agent.model = model
    if url:
        config.backend.url = url
    if auto_approve:
        config.tools.auto_approve = True
    if no_native_tools:
        config.tools.native_tools = False
    if quiet:
        config.ui.quiet = True
    if verbose:
        config.logging.level = "DEBUG"

    setup_logging(config.logging)
    if config.ui.color == "never":
        console.no_color = True
        stdout_console.no_color = True

    if status:
        asyncio.run(_show_status(config))
        return

    interactive = False
    if not prompt:
        if not sys.stdin.isatty():
            prompt = sys.stdin.read().strip()
        else:
            interactive = True

    if not interactive and not prompt:
        console.print("[red]No prompt provided[/red]")
        raise SystemExit(1)

    try:
        if interactive:
            asyncio.run(_interactive(config))
        else:
            asyncio.run(_one_shot(prompt or "", config, json_output))
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted[/dim]")
        raise SystemExit(130)
    except ProviderError as e:
        console.print(f"[red]{e.classification.message}[/red]")
        raise SystemExit(3 if e.category is ErrorCategory.CONNECTION else 1)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1)


def _build_agent(config: Config, interactive_approval: bool) -> Agent:
    approval = RichApproval(console) if interactive_approval else DeclineApproval()
    return Agent(config, approval=approval, renderer=RichRenderer(console, quiet=config.ui.quiet))


async def _check_backend(agent: Agent, config: Config) -> None:
    health = await agent.health_check()
    if not health.get("backend"):
        console.print("[red]Cannot connect to the model server. Is it running?[/red]")
        console.print(f"[dim]Tried: {config.backend.url}[/dim]")
        raise SystemExit(3)


async def _one_shot(prompt: str, config: Config, json_output: bool) -> None:
    # Approval needs a terminal; piped runs only allow what --yes permits
    agent = _build_agent(config, interactive_approval=sys.stdin.isatty())
    await _check_backend(agent, config)

    session = agent.new_session()
    if not config.ui.quiet and not json_output:
        console.print(f"[dim]Model: {config.agent.model} | Session: {session.id}[/dim]")

    response = await agent.ask(session, prompt)
    _print_response(response, session, config, json_output)


async def _interactive(config: Config) -> None:
    agent = _build_agent(config, interactive_approval=True)
    await _check_backend(agent, config)

    session = agent.new_session()
    console.print(f"[bold]toolwire v{__version__}[/bold] [dim]({config.agent.model}, session {session.id})[/dim]")
    console.print("[dim]Type 'exit' to quit.[/dim]")

    while True:
        try:
            question = (await asyncio.to_thread(console.input, "[cyan]> [/cyan]")).strip()
        except EOFError:
            # Ctrl-D
            return
        if not question:
            continue
        if question.lower() in EXIT_COMMANDS:
            return
        try:
            response = await agent.ask(session, question)
        except ProviderError as e:
            # Keep the session alive; the user can retry
            console.print(f"[red]{e.classification.message}[/red]")
            continue
        _print_response(response, session, config, json_output=False)


def _print_response(response: AgentResponse, session: Session, config: Config, json_output: bool) -> None:
    if json_output:
        output = {
            "response": response.content,
            "model": response.model,
            "tokens_prompt": response.tokens_prompt,
            "tokens_completion": response.tokens_completion,
            "turns": response.turns,
            "cancelled": response.cancelled,
            "tool_results": [
                {"tool": r.tool_name, "success": r.success, "content": r.content}
                for r in response.tool_results
            ],
            "session_id": session.id,
        }
        click.echo(json.dumps(output, indent=2))
        return

    if response.cancelled:
        console.print(f"[yellow]{response.content}[/yellow]")
        return

    if not config.ui.quiet and config.ui.show_tokens:
        total_tokens = response.tokens_prompt + response.tokens_completion
        console.print(
            f"[dim]Tokens: {total_tokens} ({response.tokens_prompt}→{response.tokens_completion})"
            f" | Turns: {response.turns} | Tools: {len(response.tool_results)}[/dim]"
        )

    # Main response to stdout
    stdout_console.print(response.content)


async def _show_status(config: Config) -> None:
    """Show backend status."""
    agent = Agent(config)
    health = await agent.health_check()

    console.print(f"[bold]toolwire v{__version__}[/bold]")
    console.print()

    if health.get("backend"):
        console.print(f"[green]✓[/green] Backend: {config.backend.url}")
        models = await agent.backend.list_models()
        if models:
            console.print(f"  Models: {', '.join(models[:5])}")
        console.print(f"  Default: {config.agent.model}")
    else:
        console.print(f"[red]✗[/red] Backend: {config.backend.url} (not responding)")

    mode = "native" if config.tools.native_tools else "text"
    console.print(f"  Tool calling: {mode}")
    console.print(f"  Tools: {', '.join(t.name for t in agent.tools.list_tools())}")
    console.print()
    console.print("[dim]Config paths: ~/.toolwire/config.toml, ./.toolwire/config.toml[/dim]")


if __name__ == "__main__":
    main()
