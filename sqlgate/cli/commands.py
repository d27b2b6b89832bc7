"""CLI commands for SQLGate."""

from __future__ import annotations

import asyncio
import json
import shlex
from pathlib import Path
from typing import Any, Coroutine, TypeVar

import typer
from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console
from rich.table import Table
from rich.text import Text

from sqlgate import __version__
from sqlgate.config.loader import get_config_path, load_config, save_config
from sqlgate.config.schema import Config
from sqlgate.db.registry import connect_database
from sqlgate.gateway import build_gateway
from sqlgate.safety.policy import SecurityPolicy, SecurityStatus
from sqlgate.tools import ToolRegistry, build_default_registry

app = typer.Typer(
    name="sqlgate",
    help="SQLGate - confirmation-gated database access for LLM tools",
    no_args_is_help=True,
)

console = Console()
EXIT_COMMANDS = {"exit", "quit", "/exit", "/quit", ":q"}
T = TypeVar("T")

_SHELL_HELP = """\
Enter SQL to propose it through the gate, or one of:
  :confirm TOKEN           execute a pending operation
  :exec NAME [JSON]        propose a stored procedure call
  :preview TABLE           show the first rows of a table
  :status                  show the security status
  :tools                   list tool definitions
  exit                     leave the shell"""


def version_callback(value: bool) -> None:
    """Print version and exit when --version is provided."""
    if value:
        console.print(f"sqlgate v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """SQLGate CLI entry point."""


_CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="Custom config path (default: ~/.sqlgate/config.json).",
)


@app.command()
def onboard(
    config_path: Path | None = _CONFIG_OPTION,
    overwrite: bool = typer.Option(
        False,
        "--overwrite",
        help="Overwrite existing config with defaults.",
    ),
) -> None:
    """Initialize the SQLGate configuration file."""
    path = config_path or get_config_path()

    if path.exists() and not overwrite:
        config = load_config(path)
        save_config(config, path)
        console.print(f"[green]Config refreshed:[/green] {path}")
        console.print("Existing values are preserved; missing fields are added.")
        return

    save_config(Config(), path)
    if path.exists() and overwrite:
        console.print(f"[green]Config reset:[/green] {path}")
    else:
        console.print(f"[green]Config created:[/green] {path}")

    console.print("\nNext steps:")
    console.print("- Configure your database in the `database` section")
    console.print("- Review `security`: modifications and stored procedures are disabled by default")
    console.print("- Try it: `sqlgate shell`")


def _render_status(status: SecurityStatus) -> None:
    table = Table(title="Security status", show_header=False)
    table.add_row("Modifications enabled", str(status.modifications_enabled))
    table.add_row("Stored procedures enabled", str(status.stored_procedures_enabled))
    table.add_row("Security level", status.security_level)
    console.print(table)
    for rec in status.recommendations:
        console.print(Text(rec))


@app.command()
def status(config_path: Path | None = _CONFIG_OPTION) -> None:
    """Show the security level derived from the configured feature flags."""
    config = load_config(config_path)
    policy = SecurityPolicy(
        allow_modifications=config.security.allow_modifications,
        allow_stored_procedures=config.security.allow_stored_procedures,
    )
    _render_status(policy.status())


async def _run_tool(config: Config, tool: str, params: dict) -> str:
    adapter = await connect_database(config.database)
    try:
        gateway = build_gateway(adapter, config.security)
        registry = build_default_registry(gateway, adapter, max_rows=config.tools.max_rows)
        return await registry.execute(tool, params)
    finally:
        await adapter.close()


def _run_or_exit(coro: Coroutine[Any, Any, T]) -> T:
    try:
        return asyncio.run(coro)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted.[/dim]")
        raise typer.Exit(code=130) from None
    except Exception as e:
        console.print(f"[red]Unexpected error:[/red] {e}")
        raise typer.Exit(code=1) from e


@app.command()
def query(
    sql: str = typer.Argument(..., help="SQL statement to propose."),
    config_path: Path | None = _CONFIG_OPTION,
) -> None:
    """Propose one SQL statement through the gate.

    Pending tokens live in this process only, so a write proposed here
    cannot be confirmed later; use `sqlgate shell` for that.
    """
    config = load_config(config_path)
    output = _run_or_exit(_run_tool(config, "execute_query", {"query": sql}))
    console.print(Text(output))


def parse_shell_command(line: str) -> tuple[str, dict]:
    """Map one shell line to ``(tool_name, params)``.

    Raises:
        ValueError: For a malformed ``:`` command.
    """
    stripped = line.strip()
    if not stripped.startswith(":"):
        return "execute_query", {"query": stripped}

    command, _, rest = stripped.partition(" ")
    rest = rest.strip()
    if command == ":confirm":
        if not rest:
            raise ValueError("usage: :confirm TOKEN")
        return "confirm_and_execute", {"confirmation_token": rest}
    if command == ":exec":
        if not rest:
            raise ValueError("usage: :exec NAME [JSON]")
        name, _, raw_params = rest.partition(" ")
        params = json.loads(raw_params) if raw_params.strip() else {}
        if not isinstance(params, dict):
            raise ValueError("procedure parameters must be a JSON object")
        return "execute_procedure", {"sp_name": name, "params": params}
    if command == ":status":
        return "get_security_status", {}
    if command == ":preview":
        parts = shlex.split(rest)
        if not parts:
            raise ValueError("usage: :preview TABLE")
        return "preview_data", {"table_name": parts[0]}
    raise ValueError(f"unknown command {command!r}")


async def _read_interactive_input(prompt_session: PromptSession) -> str:
    with patch_stdout():
        return await prompt_session.prompt_async(HTML("<b fg='ansiblue'>sql&gt;</b> "))


async def _run_shell(config: Config) -> int:
    adapter = await connect_database(config.database)
    try:
        gateway = build_gateway(adapter, config.security)
        registry: ToolRegistry = build_default_registry(gateway, adapter, max_rows=config.tools.max_rows)
        _render_status(gateway.get_security_status())
        console.print(Text(_SHELL_HELP))

        session = PromptSession(history=InMemoryHistory(), multiline=False)
        while True:
            try:
                line = (await _read_interactive_input(session)).strip()
            except (EOFError, KeyboardInterrupt):
                console.print("\n[dim]Bye.[/dim]")
                return 0

            if not line:
                continue
            if line.lower() in EXIT_COMMANDS:
                console.print("[dim]Bye.[/dim]")
                return 0
            if line == ":tools":
                for definition in registry.get_definitions():
                    console.print(f"- {definition['function']['name']}")
                continue

            try:
                tool, params = parse_shell_command(line)
            except (ValueError, json.JSONDecodeError) as e:
                console.print(f"[red]Error:[/red] {e}")
                continue

            output = await registry.execute(tool, params)
            style = "yellow" if output.startswith("SECURITY_CONFIRMATION_REQUIRED") else None
            console.print(Text(output, style=style))
    finally:
        await adapter.close()


@app.command()
def shell(config_path: Path | None = _CONFIG_OPTION) -> None:
    """Start an interactive session holding one gate (tokens survive between lines)."""
    config = load_config(config_path)
    exit_code = _run_or_exit(_run_shell(config))
    if exit_code:
        raise typer.Exit(code=exit_code)
