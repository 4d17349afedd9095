"""CLI entry point for bashmcp."""

from __future__ import annotations

import asyncio
import logging
import logging.handlers
import os
import sys

import typer
from rich.console import Console

from bashmcp import __version__
from bashmcp.config import BashMCPConfig, LoggingSettings
from bashmcp.errors import ConfigError

app = typer.Typer(
    name="bashmcp",
    help="Safe bash execution for AI assistants, stateless or in persistent sessions.",
    no_args_is_help=True,
)

# stdout belongs to the MCP stream when serving
console = Console(stderr=True)
out = Console()


def setup_logging(verbose: bool = False, settings: LoggingSettings | None = None) -> None:
    settings = settings or LoggingSettings()
    level = logging.DEBUG if verbose else getattr(logging, settings.level.upper())
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )

    if settings.file:
        handler = logging.handlers.RotatingFileHandler(
            settings.file,
            maxBytes=settings.max_size,
            backupCount=settings.max_files,
        )
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        logging.getLogger().addHandler(handler)


def _load_config(config_file: str | None, verbose: bool) -> BashMCPConfig:
    """Load and check config, exiting with status 1 when it is unusable."""
    try:
        config = BashMCPConfig.load(config_file)
        config.require_ready()
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    setup_logging(verbose, config.logging)
    return config


@app.command()
def serve(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging."
    ),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """Run the MCP server over stdio."""
    config = _load_config(config_file, verbose)

    from bashmcp.server import serve as run_server

    asyncio.run(run_server(config))


@app.command()
def run(
    command: str = typer.Argument(help="The command to execute."),
    cwd: str | None = typer.Option(
        None, "--cwd", "-d", help="Working directory (must be an allowed directory)."
    ),
    session_mode: bool = typer.Option(
        False,
        "--session-mode",
        "-s",
        help="Run inside a temporary shell session instead of a fresh process.",
    ),
    timeout: float | None = typer.Option(
        None, "--timeout", "-t", help="Timeout in seconds (default: from config)."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging."
    ),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """Execute one command and exit with its exit code."""
    config = _load_config(config_file, verbose)
    exit_code = asyncio.run(_run_once(config, command, cwd, session_mode, timeout))
    raise typer.Exit(exit_code)


async def _run_once(
    config: BashMCPConfig,
    command: str,
    cwd: str | None,
    session_mode: bool,
    timeout: float | None,
) -> int:
    from bashmcp.core import BashMCP

    async with BashMCP(config) as bash:
        if session_mode:
            created = await bash.create_session(os.path.abspath(cwd or os.getcwd()))
            if not created["success"]:
                console.print(f"[red]Error:[/red] {created['error']}", highlight=False)
                return 1
            result = await bash.execute_command(
                command, session_id=created["session_id"], timeout=timeout
            )
        else:
            result = await bash.execute_command(command, cwd=cwd, timeout=timeout)

    if result.output:
        out.print(result.output, markup=False, highlight=False)
    if not result.success and result.error:
        console.print(f"[red]Error:[/red] {result.error}", highlight=False)

    if result.exit_code is not None:
        return result.exit_code
    return 0 if result.success else 1


@app.command()
def shell(
    directory: str = typer.Argument(
        ".", help="Working directory for the session (must be an allowed directory)."
    ),
    timeout: float = typer.Option(
        2.0, "--timeout", "-t", help="Seconds to collect output after each line."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging."
    ),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """Drive an interactive session from the terminal, line by line."""
    config = _load_config(config_file, verbose)
    exit_code = asyncio.run(_repl(config, os.path.abspath(directory), timeout))
    raise typer.Exit(exit_code)


async def _repl(config: BashMCPConfig, directory: str, timeout: float) -> int:
    from bashmcp.core import BashMCP

    loop = asyncio.get_running_loop()

    async with BashMCP(config) as bash:
        created = await bash.create_session(directory, interactive=True)
        if not created["success"]:
            console.print(f"[red]Error:[/red] {created['error']}", highlight=False)
            return 1

        session_id = created["session_id"]
        console.print(f"bashmcp v{__version__} session [bold]{session_id}[/bold] in {directory}")
        console.print("[dim]Ctrl-D to quit[/dim]")

        while bash.manager.get_session(session_id) is not None:
            try:
                line = await loop.run_in_executor(None, console.input, "[bold green]>[/bold green] ")
            except (EOFError, KeyboardInterrupt):
                console.print()
                break

            result = await bash.send_input(session_id, line, timeout)
            if result.output:
                out.print(result.output, markup=False, highlight=False)
            if not result.success:
                console.print(f"[red]Error:[/red] {result.error}", highlight=False)
            elif result.waiting_for_input:
                console.print("[dim](waiting for input)[/dim]")

    return 0


def main() -> None:
    app()


if __name__ == "__main__":
    main()
