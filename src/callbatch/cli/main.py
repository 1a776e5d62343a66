"""
CallBatch CLI - Main entry point.

A terminal tool that calls a contract method on an ordered list of
targets, one transaction at a time.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.traceback import install as install_rich_traceback

from callbatch import __app_name__, __version__

if TYPE_CHECKING:
    from callbatch.core.config.models import AppConfig, CallConfig

# Load environment variables from .env (if present)
load_dotenv()

# Install rich traceback for better error display
install_rich_traceback(show_locals=False, width=120)

console = Console()
err_console = Console(stderr=True)

# Create main app
app = typer.Typer(
    name=__app_name__,
    help="Sequential batch caller for on-chain contract targets",
    rich_markup_mode="rich",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]{__app_name__}[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """CallBatch - Sequential batch caller for contract targets."""
    pass


# =============================================================================
# Import and register subcommand modules
# =============================================================================

from .commands import batch, targets  # noqa: E402

app.add_typer(batch.app, name="batch", help="Run batch calls")
app.add_typer(targets.app, name="targets", help="Inspect and validate call targets")


# =============================================================================
# Init Command
# =============================================================================


DEFAULT_APP_CONFIG = """\
# CallBatch Configuration
# Values support ${VAR} and ${VAR:-default} environment expansion

network:
  name: Monad Testnet
  rpc_url: ${CALLBATCH_RPC_URL:-https://testnet-rpc.monad.xyz}
  # chain_id: 10143
  explorer_url: https://testnet-explorer.monad.xyz
  # from_address: 0x...          # default: first account exposed by the node
  timeout_seconds: 30
  receipt_poll_interval_seconds: 1.0

# Call sent to every target
call:
  method: interact()
  # data: 0x...                   # encoded call; required when method takes arguments
  # gas: 100000

pacing:
  interval_ms: 1000

ledger:
  capacity: 20

logging:
  level: INFO
  file: logs/callbatch.log
  json_format: true
  rich_console: true

# Targets are called in this order; targets_file entries follow
targets: []
targets_file: targets.txt
"""

DEFAULT_TARGETS_FILE = """\
# One contract address per line. Blank lines and comments are ignored.
"""


@app.command()
def init(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing configuration",
    ),
) -> None:
    """Create a default configuration and targets file.

    Writes configs/app.yaml and configs/targets.txt.
    """
    config_dir = Path("configs")
    config_dir.mkdir(parents=True, exist_ok=True)
    Path("logs").mkdir(parents=True, exist_ok=True)

    created: list[str] = []
    for path, content in (
        (config_dir / "app.yaml", DEFAULT_APP_CONFIG),
        (config_dir / "targets.txt", DEFAULT_TARGETS_FILE),
    ):
        if path.exists() and not force:
            continue
        path.write_text(content, encoding="utf-8")
        created.append(str(path))

    if not created:
        console.print("[yellow]Configuration already exists. Use --force to overwrite.[/yellow]")
        return

    console.print()
    console.print(Panel.fit(
        "[bold green]OK - CallBatch initialized[/bold green]\n\n"
        "Created:\n"
        + "".join(f"  - [cyan]{name}[/cyan]\n" for name in created)
        + "\nNext steps:\n"
        "  1. Set the [yellow]call[/yellow] and network in configs/app.yaml\n"
        "  2. Add addresses to configs/targets.txt\n"
        "  3. Check them: [yellow]callbatch targets validate[/yellow]\n"
        "  4. Run: [yellow]callbatch batch run[/yellow]",
        title="[bold]Initialization Complete[/bold]",
        border_style="green",
    ))


# =============================================================================
# Status Command
# =============================================================================


@app.command()
def status(
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to app.yaml (default: $CALLBATCH_CONFIG or configs/app.yaml)",
    ),
    check: bool = typer.Option(
        False,
        "--check",
        help="Connect to the node and verify chain and sender",
    ),
) -> None:
    """Show configured network, call and target count.

    With --check, also connects to the node the way a run does and exits 1
    if that fails.
    """
    from rich.markup import escape
    from rich.table import Table

    from callbatch.core.catalog import CatalogError, TargetCatalog
    from callbatch.core.config import ConfigError, load_app_config

    try:
        config = load_app_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1)

    try:
        target_count = str(len(TargetCatalog.from_config(config).resolve()))
    except CatalogError as e:
        target_count = f"[red]invalid ({e})[/red]"

    table = Table(title="CallBatch Status", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Network", config.network.name)
    table.add_row("RPC URL", config.network.rpc_url)
    table.add_row("Chain ID", str(config.network.chain_id or "any"))
    table.add_row("Sender", config.network.from_address or "node default")
    table.add_row("Call", config.call.method)
    table.add_row("Call data", _describe_call_data(config.call))
    table.add_row("Pacing", f"{config.pacing.interval_ms} ms")
    table.add_row("Targets", target_count)

    connected = True
    if check:
        import asyncio

        from callbatch.core.channels import ChannelError

        try:
            chain_id, sender = asyncio.run(_check_connection(config))
        except ChannelError as e:
            connected = False
            table.add_row("Node", f"[red]not connected ({escape(str(e))})[/red]")
        else:
            table.add_row("Node", f"[green]connected[/green]: chain {chain_id} as {sender}")

    console.print()
    console.print(table)

    if not connected:
        raise typer.Exit(1)


def _describe_call_data(call: CallConfig) -> str:
    if call.data is not None:
        return call.data
    if call.needs_data:
        return "[red]required (method takes arguments)[/red]"
    return f"{call.resolved_data()} (from {call.method})"


async def _check_connection(config: AppConfig) -> tuple[int | None, str]:
    """Connect as a run would, then close the channel."""
    from callbatch.core.channels.jsonrpc import JsonRpcProvider

    channel = await JsonRpcProvider(config.network, config.call).connect()
    try:
        return channel.connected_chain_id, channel.sender
    finally:
        await channel.close()


# =============================================================================
# Entry Point
# =============================================================================


def run() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    run()
