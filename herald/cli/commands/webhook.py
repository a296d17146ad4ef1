"""``herald webhook MESSAGE_ID STATUS`` — apply a provider delivery callback."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from herald.cli._runtime import CatalogOption, DbOption, build_coordinator
from herald.core.errors import MessageNotFoundError

console = Console()


def webhook_cmd(
    message_id: str = typer.Argument(..., help="Message log id (msg_...)."),
    status: str = typer.Argument(
        ..., help="delivered, opened, clicked, replied, failed or bounced."
    ),
    reason: str = typer.Option(None, "--reason", help="Failure reason for failed/bounced."),
    catalog: Path = CatalogOption,
    db: Path = DbOption,
) -> None:
    """Record a delivery status reported by a channel provider."""
    coordinator = build_coordinator(catalog, db, console)
    try:
        log = coordinator.webhooks.receive(message_id, status, reason=reason)
    except MessageNotFoundError as exc:
        console.print(f"[bold red]Message not found:[/bold red] {message_id}")
        raise typer.Exit(code=1) from exc
    except ValueError as exc:
        console.print(f"[bold red]Rejected:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc

    if log.status.value != status:
        console.print(
            f"[yellow]Ignored:[/yellow] {message_id} stays {log.status.value}"
        )
        return
    console.print(f"[green]{message_id}[/green] is now [bold]{log.status.value}[/bold]")
