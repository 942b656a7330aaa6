"""CLI interface for m365bridge."""

import asyncio
import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from m365bridge import __version__
from m365bridge.config import BridgeConfig, load_config, load_default_config
from m365bridge.log import configure_logging
from m365bridge.operations import BridgeOperations, is_error_payload
from m365bridge.tools.base import ToolError
from m365bridge.tools.schemas import OptionValue

app = typer.Typer(
    name="m365bridge",
    help="Discover and run CLI for Microsoft 365 commands on behalf of an agent.",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"m365bridge {__version__}")
        raise typer.Exit()


def _load_bridge_config(config_path: Path | None) -> BridgeConfig:
    """Load the config file given on the command line, or the default one."""
    if config_path is not None and not config_path.exists():
        console.print(f"[red]Config file not found: {config_path}[/red]")
        raise typer.Exit(1)

    try:
        return load_config(config_path) if config_path else load_default_config()
    except Exception as e:
        console.print(f"Failed to load config: {e}", style="red", markup=False)
        raise typer.Exit(1) from None


def _get_operations(ctx: typer.Context) -> BridgeOperations:
    """Build the operations for the configuration chosen in the callback."""
    config: BridgeConfig = ctx.obj
    return BridgeOperations.from_config(config)


def parse_arg(raw: str) -> tuple[str, OptionValue]:
    """Parse a "--arg" value: "key=value", or a bare "key" meaning true."""
    key, sep, value = raw.partition("=")
    key = key.strip().lstrip("-")
    if not sep:
        return key, True
    return key, value


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option("--version", "-V", callback=version_callback, is_eager=True),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to config file"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging on stderr"),
    ] = False,
) -> None:
    """m365bridge: CLI for Microsoft 365 commands for LLM agents."""
    configure_logging(verbose)
    ctx.obj = _load_bridge_config(config)


@app.command("commands")
def list_commands(
    ctx: typer.Context,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the agent-facing JSON payload"),
    ] = False,
) -> None:
    """List every available command."""
    commands = asyncio.run(_get_operations(ctx).list_all_commands())
    _print_commands(commands, as_json, title="Commands")


@app.command()
def search(
    ctx: typer.Context,
    query: Annotated[str, typer.Argument(help="Search query (e.g., 'sharepoint list')")],
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", help="Maximum number of results (default: 10, max: 50)"),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the agent-facing JSON payload"),
    ] = False,
) -> None:
    """Fuzzy search commands by name and description."""
    commands = asyncio.run(_get_operations(ctx).search_commands(query, limit))
    _print_commands(commands, as_json, title=f'Commands matching "{query}"')


@app.command()
def docs(
    ctx: typer.Context,
    command_name: Annotated[str, typer.Argument(help="Command the docs belong to")],
    docs_path: Annotated[
        str,
        typer.Argument(help="Docs path from the command listing (e.g., spo/list/list-get.mdx)"),
    ],
) -> None:
    """Show the documentation of a command."""
    text = asyncio.run(_get_operations(ctx).get_command_docs(command_name, docs_path))
    typer.echo(text)
    if text.startswith("Failed to retrieve documentation"):
        raise typer.Exit(1)


@app.command()
def run(
    ctx: typer.Context,
    command_line: Annotated[
        str | None,
        typer.Argument(help="Full command line, e.g. 'm365 spo site get --url https://...'"),
    ] = None,
    name: Annotated[
        str | None,
        typer.Option("--name", "-n", help="Command name for a structured request"),
    ] = None,
    args: Annotated[
        list[str] | None,
        typer.Option("--arg", "-a", help="Option as key=value (bare key means true)"),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", "-t", help="Timeout in seconds"),
    ] = None,
) -> None:
    """Run a command and print its normalized output.

    Pass either a full command line, or --name with any number of --arg options.
    """
    if (command_line is None) == (name is None):
        console.print("[red]Provide either a command line or --name[/red]")
        raise typer.Exit(1)

    request: str | dict[str, object]
    if name is not None:
        request = {"name": name, "args": dict(parse_arg(a) for a in args or [])}
    else:
        if args:
            console.print("[red]--arg can only be used with --name[/red]")
            raise typer.Exit(1)
        request = command_line or ""

    try:
        output = asyncio.run(_get_operations(ctx).run_command(request, timeout=timeout))
    except ToolError as e:
        console.print(f"Error: {e}", style="red", markup=False)
        raise typer.Exit(1) from None

    typer.echo(output)


@app.command("config")
def show_config(ctx: typer.Context) -> None:
    """Show the effective configuration."""
    config: BridgeConfig = ctx.obj
    typer.echo(config.model_dump_json(indent=2))


def _print_commands(commands: list[dict[str, str | None]], as_json: bool, title: str) -> None:
    """Print command payloads as JSON or as a table."""
    if is_error_payload(commands):
        if as_json:
            typer.echo(json.dumps(commands))
        else:
            console.print(commands[0]["error"], style="red", markup=False)
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps(commands))
        return

    if not commands:
        console.print("[dim]No commands found.[/dim]")
        return

    table = Table(title=title)
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    table.add_column("Docs", style="dim")

    for command in commands:
        table.add_row(command["name"], command["description"] or "", command["docs"] or "")

    console.print(table)
