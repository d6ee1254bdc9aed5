"""``serve`` command: run the coordination server in the foreground."""

from typing import Optional

import typer
from rich.console import Console

from ...core.errors import SpecstormError
from ...payloads import server
from .run import resolve_config

console = Console()


def serve(
    ctx: typer.Context,
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Server port"),
) -> None:
    """Start a server."""
    try:
        config = resolve_config(ctx, port=port)
        server.serve(port=config.port)
    except SpecstormError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
