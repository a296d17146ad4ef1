"""``herald catalog`` — show (or export) the configured catalog."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from herald.catalog import dump_catalog
from herald.cli._runtime import CatalogOption, open_catalog

console = Console()


def _yes_no(flag: bool) -> str:
    return "[green]Yes[/green]" if flag else "[red]No[/red]"


def catalog_cmd(
    catalog: Path = CatalogOption,
    export: Path = typer.Option(
        None, "--export", "-o", help="Write the catalog to this JSON file."
    ),
) -> None:
    """Show channels, events, routing and escalation rules."""
    store = open_catalog(catalog, console)

    if export is not None:
        dump_catalog(store, export)
        console.print(f"[green]Catalog written to[/green] {export}")
        return

    channels = Table(title="Channels")
    channels.add_column("Id", style="cyan")
    channels.add_column("Type")
    channels.add_column("Name")
    channels.add_column("Active", justify="center")
    for ch in store.list_channels():
        channels.add_row(ch.id, ch.type.value, ch.name, _yes_no(ch.is_active))
    console.print(channels)

    events = Table(title="Events")
    events.add_column("Id", style="cyan")
    events.add_column("Code")
    events.add_column("Severity")
    events.add_column("Needs response", justify="center")
    for ev in store.list_events():
        events.add_row(ev.id, ev.code, ev.severity.value, _yes_no(ev.requires_response))
    console.print(events)

    routing = Table(title="Routing rules")
    routing.add_column("Id", style="cyan")
    routing.add_column("Event")
    routing.add_column("Channel")
    routing.add_column("Recipient")
    routing.add_column("Prio", justify="right")
    routing.add_column("Escalation")
    for rule in sorted(store.list_routing_rules(), key=lambda r: (r.event_id, r.priority)):
        escalation = (
            f"{rule.escalation_channel_id} after {rule.wait_days_before_escalation}d"
            if rule.escalation_channel_id
            else "[dim]-[/dim]"
        )
        recipient = rule.recipient_type.value
        if rule.staff_role_ids:
            recipient += f" ({', '.join(rule.staff_role_ids)})"
        routing.add_row(
            rule.id, rule.event_id, rule.channel_id, recipient, str(rule.priority), escalation
        )
    console.print(routing)

    escalation = Table(title="Escalation rules")
    escalation.add_column("Id", style="cyan")
    escalation.add_column("Event")
    escalation.add_column("From")
    escalation.add_column("To")
    escalation.add_column("Wait", justify="right")
    escalation.add_column("Max", justify="right")
    for rule in store.list_escalation_rules():
        escalation.add_row(
            rule.id,
            rule.event_id,
            rule.from_channel_id,
            rule.to_channel_id,
            f"{rule.wait_days}d",
            str(rule.max_attempts),
        )
    console.print(escalation)

    console.print(
        f"[bold]{len(store.list_templates())} templates, "
        f"{len(store.list_staff())} staff, "
        f"{len(store.list_applications())} applications[/bold]"
    )
