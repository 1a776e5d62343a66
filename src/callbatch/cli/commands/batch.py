"""
Batch commands for running calls against the target catalog.
"""

from __future__ import annotations

import asyncio
import signal
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional

import typer
from rich.console import Console
from rich.live import Live

from callbatch.cli.display import render_snapshot

if TYPE_CHECKING:
    from callbatch.core.config.models import AppConfig
    from callbatch.core.engine import BatchRunner, RunSnapshot

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Run batch calls",
    no_args_is_help=True,
)


def _load_config(config_path: Optional[Path]) -> AppConfig:
    """Load app configuration or exit with an error."""
    from callbatch.core.config import ConfigError, load_app_config

    try:
        return load_app_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]Error loading config:[/red] {e}")
        if e.details:
            err_console.print(f"[dim]{e.details}[/dim]")
        raise typer.Exit(1)


def _stop_on_interrupt(
    loop: asyncio.AbstractEventLoop, runner: BatchRunner
) -> Callable[[], None]:
    """SIGINT handler for the first Ctrl+C.

    It requests a cooperative stop and gives SIGINT back to Python, so a
    second Ctrl+C raises KeyboardInterrupt and aborts the call in flight.
    """

    def handle() -> None:
        loop.remove_signal_handler(signal.SIGINT)
        err_console.print(
            "[yellow]Stopping after the current call; press Ctrl+C again to abort[/yellow]"
        )
        runner.stop()

    return handle


async def _run_until_done(runner: BatchRunner) -> RunSnapshot | None:
    """Start the runner with Ctrl+C mapped to a cooperative stop."""
    loop = asyncio.get_running_loop()

    try:
        loop.add_signal_handler(signal.SIGINT, _stop_on_interrupt(loop, runner))
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        # No loop signal handlers on this platform
        handler_installed = False

    try:
        return await runner.start()
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


@app.command("run")
def run_batch(
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to app.yaml (default: $CALLBATCH_CONFIG or configs/app.yaml)",
    ),
    targets_file: Optional[Path] = typer.Option(
        None,
        "--targets-file",
        "-t",
        help="File with one target per line (overrides config)",
    ),
    interval_ms: Optional[int] = typer.Option(
        None,
        "--interval-ms",
        "-i",
        min=0,
        help="Pause between calls in milliseconds (overrides config)",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Don't ask for confirmation",
    ),
) -> None:
    """Call every target in order, one at a time.

    Press Ctrl+C to stop after the call in flight completes.

    Examples:
        callbatch batch run
        callbatch batch run -t targets.txt --interval-ms 2000
        callbatch batch run -c configs/app.yaml --yes
    """
    from callbatch.core.catalog import CatalogError, TargetCatalog
    from callbatch.core.engine import create_runner
    from callbatch.core.logging import setup_logging

    config = _load_config(config_path)
    if interval_ms is not None:
        config.pacing.interval_ms = interval_ms

    try:
        targets = TargetCatalog.from_config(config, targets_file=targets_file).resolve()
    except CatalogError as e:
        err_console.print(f"[red]Invalid targets:[/red] {e}")
        raise typer.Exit(1)

    if not targets:
        err_console.print("[red]No targets configured[/red]")
        err_console.print("[dim]Add 'targets' to app.yaml or pass --targets-file[/dim]")
        raise typer.Exit(1)

    console.print()
    console.print(
        f"[bold]Calling[/bold] [cyan]{config.call.method}[/cyan] on "
        f"[bold]{len(targets)}[/bold] target(s) via {config.network.name}"
    )
    console.print(f"[dim]Pacing: {config.pacing.interval_ms} ms between calls[/dim]")
    console.print()

    if not yes and not typer.confirm("Send transactions?", default=False):
        raise typer.Exit(0)

    config.ensure_directories()
    setup_logging(
        level=config.logging.level,
        log_file=config.logging.file,
        json_format=config.logging.json_format,
        rich_console=config.logging.rich_console,
        console=console,
    )

    runner = create_runner(config, targets_file=targets_file)

    with Live(
        render_snapshot(runner.snapshot(), config.network),
        console=console,
        refresh_per_second=4,
    ) as live:
        unsubscribe = runner.subscribe(
            lambda snapshot: live.update(render_snapshot(snapshot, config.network))
        )
        try:
            snapshot = asyncio.run(_run_until_done(runner))
        finally:
            unsubscribe()

    console.print()
    if snapshot is None:
        err_console.print("[red]A run is already in progress[/red]")
        raise typer.Exit(1)

    _show_summary(snapshot)

    if any(outcome.sequence_index == 0 for outcome in snapshot.ledger):
        raise typer.Exit(1)


def _show_summary(snapshot: RunSnapshot) -> None:
    """Show run summary."""
    skipped = snapshot.total - snapshot.processed

    if snapshot.failed == 0 and skipped == 0 and snapshot.processed:
        style = "green"
    elif snapshot.processed:
        style = "yellow"
    else:
        style = "red"

    console.print(
        f"[{style}]Processed {snapshot.processed}/{snapshot.total}: "
        f"{snapshot.succeeded} succeeded, {snapshot.failed} failed"
        f"{f', {skipped} skipped' if skipped else ''}[/{style}]"
    )

    for outcome in snapshot.ledger:
        if outcome.sequence_index == 0:
            err_console.print(f"[red]{outcome.detail}[/red]")
