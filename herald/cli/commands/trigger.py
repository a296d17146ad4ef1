"""``herald trigger EVENT_ID APPLICATION_ID`` — fire an onboarding event."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from herald.cli._runtime import CatalogOption, DbOption, build_coordinator
from herald.core.errors import ConfigurationError
from herald.monitor.renderer import HistoryRenderer

console = Console()


def trigger_cmd(
    event_id: str = typer.Argument(..., help="Event id, e.g. evt_docs_pending."),
    application_id: str = typer.Argument(..., help="Application id, e.g. app_001."),
    catalog: Path = CatalogOption,
    db: Path = DbOption,
) -> None:
    """Route, render and send the messages for one event firing.

    Targets that fail are listed but never stop the others.
    """
    coordinator = build_coordinator(catalog, db, console)
    try:
        report = coordinator.trigger_with_report(event_id, application_id)
    except ConfigurationError as exc:
        console.print(f"[bold red]Cannot trigger:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc

    if report.logs:
        HistoryRenderer(console).print_logs(
            report.logs, title=f"{event_id} -> {application_id}"
        )
    else:
        console.print("[dim]No messages routed for this event.[/dim]")

    for failure in report.failures:
        console.print(
            f"[bold red]Failed:[/bold red] {failure.target.channel_id} -> "
            f"{failure.target.recipient_name}: {failure.message}"
        )
    if report.watched:
        console.print(f"[yellow]Escalation scheduled for {len(report.watched)} message(s).[/yellow]")

    console.print(
        f"[bold]{len(report.logs)} sent, {len(report.failures)} failed[/bold]"
    )
    if report.failures and not report.logs:
        raise typer.Exit(code=1)
