"""
Target catalog commands.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Inspect and validate call targets",
    no_args_is_help=True,
)


@app.command("list")
def list_targets(
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
) -> None:
    """List targets in the order they will be called."""
    from callbatch.core.catalog import CatalogError, TargetCatalog
    from callbatch.core.config import ConfigError, load_app_config

    try:
        config = load_app_config(config_path)
        targets = TargetCatalog.from_config(config, targets_file=targets_file).resolve()
    except (ConfigError, CatalogError) as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if not targets:
        console.print("[dim]No targets configured.[/dim]")
        return

    table = Table(title=f"Targets ({len(targets)})", show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Address")

    for index, target in enumerate(targets, start=1):
        table.add_row(str(index), target)

    console.print(table)


@app.command("validate")
def validate_targets(
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
) -> None:
    """Validate configuration and targets without sending anything."""
    from callbatch.core.catalog import CatalogError, TargetCatalog, find_duplicates
    from callbatch.core.config import load_app_config, validate_app_config_file
    from callbatch.core.config.loader import default_config_path

    path = config_path or default_config_path()
    if path.exists():
        errors = validate_app_config_file(path)
        if errors:
            err_console.print(f"[red]Invalid configuration in {path}:[/red]")
            for error in errors:
                err_console.print(f"  - {error}")
            raise typer.Exit(1)
    elif config_path is not None:
        err_console.print(f"[red]Config file not found:[/red] {path}")
        raise typer.Exit(1)

    config = load_app_config(config_path)

    try:
        targets = TargetCatalog.from_config(config, targets_file=targets_file).resolve()
    except CatalogError as e:
        err_console.print(f"[red]Invalid targets:[/red] {e}")
        raise typer.Exit(1)

    if config.call.needs_data:
        console.print(
            f"[yellow]Warning: {config.call.method} takes arguments but call.data "
            "is not set; runs will fail to start[/yellow]"
        )

    duplicates = find_duplicates(targets)
    if duplicates:
        console.print(f"[yellow]{len(duplicates)} duplicate target(s)[/yellow]")

    console.print(f"[green]OK - {len(targets)} valid target(s)[/green]")
