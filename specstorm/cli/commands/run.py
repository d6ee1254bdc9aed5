"""Commands that run a supervision session: ``work`` and ``start``."""

import os
from functools import partial
from typing import Optional

import typer
from rich.console import Console

from ...core.config import load_config
from ...core.enums import TerminationReason
from ...core.errors import SpecstormError
from ...core.log import get_logger
from ...core.supervisor import Supervisor
from ...core.types import PROCESS_INDEX_ENV, SpecstormConfig
from ...payloads import server, worker
from ...utils.output import NullSink

_HELP = {
    "worker_processes": "Number of workers (default: number of CPUs)",
    "duration": "Simulate work for this many seconds",
    "port": "Server port",
    "show_server_output": "Show the server's standard output",
}

EXIT_CODES = {
    TerminationReason.COMPLETED: 0,
    TerminationReason.ONLY_INFRASTRUCTURE: 0,
    TerminationReason.LOST_INFRASTRUCTURE: 1,
    TerminationReason.INTERRUPTED: 130,
}

console = Console()
logger = get_logger(__name__)


def resolve_config(ctx: typer.Context, **overrides) -> SpecstormConfig:
    """Load configuration using the global ``--config`` and ``--verbose`` options."""
    config_file = None
    if ctx.obj and "cli_options" in ctx.obj:
        cli_options = ctx.obj["cli_options"]
        config_file = cli_options.config_file
        if cli_options.verbose > 0:
            overrides["verbose"] = True
    return load_config(config_file=config_file, **overrides)


def run_worker(index: int, duration: int) -> int:
    """Entry point executed inside a worker child."""
    os.environ[PROCESS_INDEX_ENV] = str(index)
    return worker.run(duration=duration)


def spawn_workers(supervisor: Supervisor, config: SpecstormConfig) -> None:
    for index in range(max(1, config.worker_processes)):
        supervisor.spawn(
            partial(run_worker, index, config.duration), name=f"worker-{index}"
        )


def _finish(supervisor: Supervisor) -> None:
    reason = supervisor.wait()
    logger.info("Session ended: %s", reason.value)
    raise typer.Exit(EXIT_CODES[reason])


def work(
    ctx: typer.Context,
    worker_processes: Optional[int] = typer.Option(
        None, "--number", "-n", help=_HELP["worker_processes"]
    ),
    duration: Optional[int] = typer.Option(
        None, "--duration", "-d", help=_HELP["duration"]
    ),
) -> None:
    """Start workers."""
    try:
        config = resolve_config(
            ctx, worker_processes=worker_processes, duration=duration
        )
        supervisor = Supervisor(config)
        spawn_workers(supervisor, config)
    except SpecstormError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    _finish(supervisor)


def start(
    ctx: typer.Context,
    worker_processes: Optional[int] = typer.Option(
        None, "--number", "-n", help=_HELP["worker_processes"]
    ),
    duration: Optional[int] = typer.Option(
        None, "--duration", "-d", help=_HELP["duration"]
    ),
    port: Optional[int] = typer.Option(None, "--port", "-p", help=_HELP["port"]),
    show_server_output: bool = typer.Option(
        False, "--show-server-output", help=_HELP["show_server_output"]
    ),
) -> None:
    """Start a server and workers."""
    try:
        config = resolve_config(
            ctx, worker_processes=worker_processes, duration=duration, port=port
        )
        supervisor = Supervisor(config)
        server_process = supervisor.spawn(
            partial(server.serve, port=config.port), infrastructure=True, name="server"
        )
        if not (show_server_output or config.verbose):
            server_process.stdout = NullSink()
        spawn_workers(supervisor, config)
    except SpecstormError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    _finish(supervisor)
