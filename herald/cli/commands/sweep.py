"""``herald sweep`` — escalate unanswered messages whose wait has elapsed.

Runs a single sweep by default.  ``--loop`` keeps sweeping every
``HERALD_SWEEP_INTERVAL_SECONDS`` until interrupted.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import typer
from rich.console import Console

from herald.cli._runtime import CatalogOption, DbOption, build_coordinator
from herald.config import settings
from herald.monitor.renderer import HistoryRenderer

console = Console()


def sweep_cmd(
    loop: bool = typer.Option(
        False, "--loop", "-L", help="Keep sweeping until Ctrl+C."
    ),
    interval: int = typer.Option(
        None,
        "--interval",
        "-i",
        help="Seconds between sweeps in loop mode (defaults to HERALD_SWEEP_INTERVAL_SECONDS).",
    ),
    at: datetime = typer.Option(
        None,
        "--at",
        formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"],
        help="Sweep as of this UTC time instead of now.",
    ),
    advance_days: float = typer.Option(
        0.0,
        "--advance-days",
        help="Shift the sweep time forward by this many days (simulation).",
    ),
    catalog: Path = CatalogOption,
    db: Path = DbOption,
) -> None:
    """Escalate every due, unanswered message to its fallback channel."""
    coordinator = build_coordinator(catalog, db, console)

    if loop:
        seconds = interval or settings.sweep_interval_seconds
        console.print(
            f"[dim]Sweeping every {seconds}s. Press Ctrl+C to stop.[/dim]"
        )
        try:
            total = coordinator.scheduler.run_forever(seconds)
        except KeyboardInterrupt:
            console.print("[dim]Stopped.[/dim]")
            return
        console.print(f"[bold]{total} message(s) escalated.[/bold]")
        return

    now = (at.replace(tzinfo=timezone.utc) if at else datetime.now(timezone.utc)) + timedelta(
        days=advance_days
    )
    escalated = coordinator.sweep(now)
    if escalated:
        HistoryRenderer(console).print_logs(escalated, title="Escalated")
    console.print(
        f"[bold]{len(escalated)} message(s) escalated[/bold] "
        f"[dim](as of {now.strftime('%Y-%m-%d %H:%M UTC')}, "
        f"{len(coordinator.scheduler.pending())} still pending)[/dim]"
    )
