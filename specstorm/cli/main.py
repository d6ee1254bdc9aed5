"""Main CLI entry point for specstorm."""

import platform
import sys
from pathlib import Path
from typing import Optional

import aiohttp
import typer
from pydantic import BaseModel, Field
from rich.console import Console
from rich.table import Table

from ..core.errors import SpecstormError
from ..core.log import configure_logging, get_logger
from .commands.run import resolve_config, start, work
from .commands.serve import serve


class GlobalCliOptions(BaseModel):
    """Global CLI options that can be used across all commands."""

    verbose: int = Field(0, description="Increase verbosity level")
    config_file: Optional[Path] = Field(None, description="Configuration file path")
    log_level: str = Field(
        "WARNING", description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )


app = typer.Typer(
    name="specstorm",
    help="Parallel test runner",
    no_args_is_help=True,
    rich_markup_mode="markdown",
)
console = Console()
logger = get_logger(__name__)

app.command(name="work")(work)
app.command(name="serve")(serve)
app.command(name="start")(start)
for _alias in ("wrk", "twerk", "w"):
    app.command(name=_alias, hidden=True)(work)
for _alias in ("srv", "s"):
    app.command(name=_alias, hidden=True)(serve)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="Increase verbosity level"
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR) - explicit level",
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Configuration file path (YAML)"
    ),
) -> None:
    """specstorm: parallel test runner."""
    if verbose > 0 and log_level is not None:
        console.print("[red]Error: Cannot specify both --verbose and --log-level[/red]")
        raise typer.Exit(1)

    if log_level is None:
        resolved_log_level = (
            "DEBUG" if verbose >= 2 else "INFO" if verbose == 1 else "WARNING"
        )
    else:
        resolved_log_level = log_level.upper()

    cli_options = GlobalCliOptions(
        verbose=verbose,
        config_file=config_file,
        log_level=resolved_log_level,
    )
    ctx.ensure_object(dict)
    ctx.obj["cli_options"] = cli_options

    configure_logging(
        level=cli_options.log_level, enable_console=True, enable_json=False
    )


@app.command()
def version() -> None:
    """Print version."""
    from .. import __version__

    table = Table(title="specstorm Version Information")
    table.add_column("Component", style="cyan")
    table.add_column("Version", style="green")
    table.add_row("specstorm", __version__)
    table.add_row("aiohttp", aiohttp.__version__)
    table.add_row("Python", platform.python_version())
    console.print(table)


# -v/--version would clash with the global verbosity flag.
app.command(name="v", hidden=True)(version)


@app.command()
def config(ctx: typer.Context) -> None:
    """Show current configuration."""
    try:
        current_config = resolve_config(ctx)
    except SpecstormError as e:
        console.print(f"[red]Error getting configuration: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="specstorm Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Worker Processes", str(current_config.worker_processes))
    table.add_row("Duration", f"{current_config.duration}s")
    table.add_row("Server Port", str(current_config.port))
    table.add_row("Verbose", str(current_config.verbose))
    table.add_row("Log Level", current_config.log_level)
    table.add_row("Poll Interval", f"{current_config.poll_interval}s")
    table.add_row("Read Chunk Size", str(current_config.read_chunk_size))
    table.add_row("Flush Delimiter", current_config.flush_delimiter)
    console.print(table)


def cli_main() -> None:
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except (RuntimeError, OSError, ValueError, ImportError) as e:
        logger.error("Unexpected error: %s", e)
        console.print(f"[red]Unexpected error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    cli_main()
