"""``herald demo`` — walk the demo catalog through simulated days.

Fires a handful of events, applies a delivery callback, then sweeps at
simulated day 3 and day 5 so escalations become visible without waiting.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from herald.cli._runtime import CatalogOption, DbOption, build_coordinator
from herald.core.coordinator import EventTriggerCoordinator
from herald.models.messages import MessageLog, MessageStatus
from herald.monitor.projection import MessageHistoryProjection
from herald.monitor.renderer import HistoryRenderer

console = Console()

DEMO_START = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


class SimulatedClock:
    """A clock the demo moves forward by hand."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: float) -> datetime:
        self.now += timedelta(days=days)
        return self.now


def _fire(
    coordinator: EventTriggerCoordinator, event_id: str, application_id: str
) -> list[MessageLog]:
    report = coordinator.trigger_with_report(event_id, application_id)
    console.print(
        f"[bold cyan]{event_id}[/bold cyan] -> {application_id}: "
        f"{len(report.logs)} sent, {len(report.failures)} failed, "
        f"{len(report.watched)} watched"
    )
    for failure in report.failures:
        console.print(f"  [red]{failure.target.channel_id}: {failure.message}[/red]")
    return report.logs


def demo_cmd(
    catalog: Path = CatalogOption,
    db: Path = DbOption,
    persist: bool = typer.Option(
        False, "--persist", help="Write the demo logs to the SQLite database."
    ),
) -> None:
    """Run the onboarding demo with simulated time."""
    clock = SimulatedClock(DEMO_START)
    coordinator = build_coordinator(catalog, db, console, memory=not persist, clock=clock)
    renderer = HistoryRenderer(console)
    projection = MessageHistoryProjection(coordinator.logs)

    console.print()
    console.print(
        Panel(
            "[bold]Herald demo[/bold]\n\n"
            "Events fire on day 0. Sweeps run on simulated day 3 and day 5.",
            border_style="cyan",
            padding=(1, 2),
        )
    )

    _fire(coordinator, "evt_app_submitted", "app_005")
    _fire(coordinator, "evt_docs_pending", "app_001")
    reminders = _fire(coordinator, "evt_reminder_3day", "app_002")
    _fire(coordinator, "evt_approved", "app_004")

    clock.advance(1)
    for log in reminders:
        coordinator.webhooks.receive(log.id, MessageStatus.OPENED, occurred_at=clock())
        console.print(f"[green]Day 1:[/green] {log.recipient_name} opened {log.id}")

    for day in (3, 5):
        clock.now = DEMO_START + timedelta(days=day)
        escalated = coordinator.sweep()
        console.print(f"[bold]Day {day} sweep:[/bold] {len(escalated)} escalated")
        for log in escalated:
            console.print(
                f"  {log.escalated_from} -> [yellow]{log.id}[/yellow] on {log.channel_id}"
            )

    console.print()
    renderer.print_history(projection.history("app_001"))
    console.print(renderer.summary_text(projection.summary()))
