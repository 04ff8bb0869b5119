"""
CLI entry point for llm-agent.

Commands:
    llm-agent run <message>   - Run one agent conversation
    llm-agent tools           - List tool providers and their tools
    llm-agent doctor          - Check completion client status
    llm-agent config          - Manage configuration
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from llm_agent.config.settings import get_config_file, load_settings
from llm_agent.logging import configure_logging

app = typer.Typer(
    name="llm-agent",
    help="Tool-using LLM agent - run conversations that call your tools",
    no_args_is_help=True,
)
console = Console()

DEFAULT_CONFIG = """\
# llm-agent configuration

# Default settings for 'llm-agent run'
defaults:
  client: anthropic
  # model: claude-3-5-sonnet-20241022
  max_tokens: 1024
  temperature: 0.7
  max_tool_call_iterations: 10
  request_timeout: 30
  tool_timeout: 5
  max_retries: 2
  enable_prompt_caching: true
  # docs_path: ~/docs/articles
  # base_url: https://example.com
  # tools_config: ~/.config/llm-agent/tools.yaml
  # disabled_providers: []
  pricing:
    input_per_million: 3.00
    output_per_million: 15.00
    cache_read_per_million: 0.30
    cache_write_per_million: 3.75
"""


def _split(value: str | None) -> list[str] | None:
    if not value:
        return None
    return [part.strip() for part in value.split(",") if part.strip()]


@app.command()
def run(
    message: str = typer.Argument(..., help="User message to send to the agent"),
    client: str | None = typer.Option(
        None, "--client", "-c", help="Completion client (default: from config or anthropic)"
    ),
    model: str | None = typer.Option(None, "--model", "-m", help="Model override"),
    max_iterations: int | None = typer.Option(
        None, "--max-iterations", help="Maximum tool-call iterations"
    ),
    max_tokens: int | None = typer.Option(None, "--max-tokens", help="Maximum response tokens"),
    temperature: float | None = typer.Option(None, "--temperature", "-t", help="Sampling temperature"),
    docs: Path | None = typer.Option(None, "--docs", help="Directory of Markdown feature docs"),
    tools_config: Path | None = typer.Option(
        None, "--tools-config", help="YAML file declaring tool providers"
    ),
    disable: str | None = typer.Option(
        None, "--disable", help="Comma-separated tool providers to disable"
    ),
    system_prompt: str | None = typer.Option(None, "--system", "-s", help="System prompt"),
    user_id: str = typer.Option("cli", "--user-id", help="Caller user id passed to tools"),
    scope_id: str | None = typer.Option(None, "--scope-id", help="Caller scope id passed to tools"),
    role: list[str] = typer.Option([], "--role", help="Caller role (repeatable)"),
    parallel: bool = typer.Option(False, "--parallel", help="Run tool calls concurrently"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """Run one agent conversation for MESSAGE."""
    configure_logging(verbose=verbose)

    try:
        from llm_agent import Agent
        from llm_agent.protocol.types import ExecutionContext

        settings = load_settings(
            client=client,
            model=model,
            max_tool_call_iterations=max_iterations,
            max_tokens=max_tokens,
            temperature=temperature,
            docs_path=docs,
            tools_config=tools_config,
            disabled_providers=_split(disable),
            system_prompt=system_prompt,
            parallel_tool_calls=parallel or None,
        )

        if not output_json:
            console.print(
                f"[bold blue]Agent[/bold blue] Running with {settings.client}"
                f"{' (' + settings.model + ')' if settings.model else ''}..."
            )

        agent = Agent(settings=settings)
        context = ExecutionContext(user_id=user_id, scope_id=scope_id, roles=tuple(role))
        result = asyncio.run(agent.run(message, context=context))
    except Exception as e:
        if output_json:
            print(json.dumps({"error": str(e)}))
        else:
            console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if output_json:
        print(json.dumps(result.model_dump(mode="json"), indent=2, default=str))
    elif result.success:
        title = "[green]Agent Result: COMPLETED[/green]"
        if result.truncated:
            title = "[yellow]Agent Result: COMPLETED (truncated)[/yellow]"
        console.print(Panel(result.text or "", title=title, border_style="green"))
    else:
        body = result.error_message or "Unknown error"
        if result.text:
            body = f"{result.text}\n\n{body}"
        console.print(
            Panel(
                body,
                title=f"[red]Agent Result: {result.outcome.value.upper()}[/red]",
                border_style="red",
            )
        )

    if verbose and not output_json:
        console.print("\n[bold]Metrics:[/bold]")
        console.print(f"  Duration: {result.duration_ms}ms")
        console.print(f"  Iterations: {result.iteration_count}")
        console.print(f"  Tool calls: {result.total_tool_calls}")
        console.print(f"  Tokens: {result.usage.total_tokens}")
        if result.estimated_cost_usd is not None:
            console.print(f"  Est. cost: ${result.estimated_cost_usd:.4f}")
        for entry in result.tool_calls:
            status = "[red]error[/red]" if entry.is_error else "[green]ok[/green]"
            console.print(f"  [{entry.iteration}] {entry.name} {status} ({entry.duration_ms}ms)")

    if not result.success:
        sys.exit(1)


@app.command()
def tools(
    docs: Path | None = typer.Option(None, "--docs", help="Directory of Markdown feature docs"),
    tools_config: Path | None = typer.Option(
        None, "--tools-config", help="YAML file declaring tool providers"
    ),
    disable: str | None = typer.Option(
        None, "--disable", help="Comma-separated tool providers to disable"
    ),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """List tool providers, their tools and enabled state."""
    from llm_agent.agent import build_registry

    try:
        settings = load_settings(
            docs_path=docs, tools_config=tools_config, disabled_providers=_split(disable)
        )
        providers: list[dict[str, Any]] = build_registry(settings).describe()
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if output_json:
        print(json.dumps(providers, indent=2))
        return

    if not providers:
        console.print("[yellow]No tool providers configured.[/yellow]")
        console.print("Use --docs or --tools-config, or set them in the config file.")
        return

    table = Table(title="Tool Providers")
    table.add_column("Provider", style="cyan")
    table.add_column("Status")
    table.add_column("Tools")
    table.add_column("Description")

    for provider in providers:
        status = "[green]enabled[/green]" if provider["enabled"] else "[dim]disabled[/dim]"
        table.add_row(
            provider["name"], status, ", ".join(provider["tools"]) or "-", provider["description"] or "-"
        )

    console.print(table)


@app.command()
def doctor() -> None:
    """Check completion client availability and configuration."""
    console.print("[bold blue]Agent Doctor[/bold blue] Checking clients...\n")

    from llm_agent.clients import get_client, get_registry

    client_names = get_registry().list_clients()

    if not client_names:
        console.print("[yellow]No clients registered.[/yellow]")
        console.print("Install client packages: pip install llm-agent[all]")
        return

    table = Table(title="Client Status")
    table.add_column("Client", style="cyan")
    table.add_column("Status")
    table.add_column("Message")
    table.add_column("Latency")

    for name in client_names:
        try:
            result = asyncio.run(get_client(name).doctor())

            status = "[green]OK[/green]" if result.ok else "[red]FAIL[/red]"
            message = result.message or "-"
            latency = f"{result.latency_ms:.0f}ms" if result.latency_ms else "-"

            table.add_row(name, status, message, latency)
        except Exception as e:
            table.add_row(name, "[red]ERROR[/red]", str(e), "-")

    console.print(table)


@app.command()
def config(
    show: bool = typer.Option(False, "--show", help="Show current configuration"),
    init: bool = typer.Option(False, "--init", help="Initialize default configuration"),
) -> None:
    """Manage llm-agent configuration."""
    config_file = get_config_file()

    if show:
        if config_file.exists():
            console.print(config_file.read_text())
        else:
            console.print("[yellow]No configuration file found.[/yellow]")
            console.print(f"Run 'llm-agent config --init' to create one at {config_file}")
        return

    if init:
        if config_file.exists():
            console.print(f"[yellow]Configuration already exists at {config_file}[/yellow]")
            return
        config_file.parent.mkdir(parents=True, exist_ok=True)
        config_file.write_text(DEFAULT_CONFIG)
        console.print(f"[green]Created configuration at {config_file}[/green]")
        return

    console.print("Usage: llm-agent config [--show | --init]")


@app.command()
def version() -> None:
    """Show version information."""
    from llm_agent import __version__

    console.print(f"llm-agent v{__version__}")


if __name__ == "__main__":
    app()
