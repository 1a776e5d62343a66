"""
Rich renderables for run state.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Group
from rich.markup import escape
from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text

from callbatch.core.engine.models import RunSnapshot, RunStatus

if TYPE_CHECKING:
    from callbatch.core.config.models import NetworkConfig


STATUS_STYLES = {
    RunStatus.IDLE: "dim",
    RunStatus.RUNNING: "bold cyan",
    RunStatus.STOPPING: "bold yellow",
    RunStatus.COMPLETED: "bold green",
}


def _short(value: str, keep: int = 10) -> str:
    if len(value) <= keep * 2 + 3:
        return value
    return f"{value[:keep]}...{value[-keep:]}"


def render_header(snapshot: RunSnapshot) -> Text:
    if snapshot.status.active:
        label = f"Contract {snapshot.cursor}/{snapshot.total}"
        if snapshot.status is RunStatus.STOPPING:
            label += " (stopping)"
    else:
        label = "Completed" if snapshot.processed or snapshot.ledger else "Idle"

    return Text(label, style=STATUS_STYLES[snapshot.status])


def render_stats(snapshot: RunSnapshot) -> Text:
    text = Text()
    text.append(f"{snapshot.succeeded}", style="bold green")
    text.append(" successful   ")
    text.append(f"{snapshot.failed}", style="bold red")
    text.append(" failed   ")
    text.append(f"{snapshot.processed}", style="bold blue")
    text.append(" processed")
    return text


def render_ledger(
    snapshot: RunSnapshot,
    network: NetworkConfig | None = None,
) -> Table:
    """Table of recent outcomes, newest first."""
    table = Table(title="Recent Calls", show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Target")
    table.add_column("Result", justify="center")
    table.add_column("Time", justify="right", style="dim")
    table.add_column("Detail")

    for outcome in snapshot.ledger:
        position = (
            f"{outcome.sequence_index}/{snapshot.total}"
            if outcome.sequence_index
            else "-"
        )
        result = "[green]Success[/green]" if outcome.ok else "[red]Failed[/red]"

        if outcome.detail:
            detail = outcome.detail
        elif outcome.reference and network is not None:
            detail = network.tx_url(outcome.reference) or outcome.reference
        else:
            detail = outcome.reference or ""

        table.add_row(
            position,
            _short(outcome.target),
            result,
            outcome.completed_at.astimezone().strftime("%H:%M:%S"),
            escape(detail),
        )

    return table


def render_snapshot(
    snapshot: RunSnapshot,
    network: NetworkConfig | None = None,
) -> Group:
    """Full run view: header, progress bar, counters and recent calls."""
    # Cursor resets on finish, so idle runs show how far they got
    reached = snapshot.cursor if snapshot.status.active else snapshot.processed
    total = max(snapshot.total, 1)

    parts = [
        render_header(snapshot),
        ProgressBar(total=total, completed=reached, width=60),
        Text(f"{reached / total * 100:.0f}% complete", style="dim"),
        render_stats(snapshot),
    ]
    if snapshot.ledger:
        parts.append(render_ledger(snapshot, network))
    return Group(*parts)
