"""``herald logs [APPLICATION_ID]`` and ``herald chain MESSAGE_ID``."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from herald.cli._runtime import DbOption, open_log_store
from herald.core.errors import MessageNotFoundError
from herald.monitor.projection import MessageHistoryProjection
from herald.monitor.renderer import HistoryRenderer

console = Console()


def logs_cmd(
    application_id: str = typer.Argument(
        None, help="Show one application's history (all messages if omitted)."
    ),
    follow: bool = typer.Option(
        False, "--follow", "-f", help="Keep re-rendering the history (Ctrl+C to exit)."
    ),
    db: Path = DbOption,
) -> None:
    """Show the message history."""
    projection = MessageHistoryProjection(open_log_store(db))
    renderer = HistoryRenderer(console)

    if application_id is None:
        logs = projection.all_logs()
        if not logs:
            console.print("[dim]No messages recorded.[/dim]")
            return
        renderer.print_logs(logs, title="All messages")
        console.print(renderer.summary_text(projection.summary()))
        return

    if follow:
        renderer.render_live(application_id, projection)
        return
    history = projection.history(application_id)
    if not history.logs:
        console.print(f"[dim]No messages recorded for {application_id}.[/dim]")
        return
    renderer.print_history(history)


def chain_cmd(
    message_id: str = typer.Argument(..., help="Any message in the chain."),
    db: Path = DbOption,
) -> None:
    """Show the escalation chain a message belongs to."""
    projection = MessageHistoryProjection(open_log_store(db))
    try:
        chain = projection.chain(message_id)
    except MessageNotFoundError as exc:
        console.print(f"[bold red]Message not found:[/bold red] {message_id}")
        raise typer.Exit(code=1) from exc
    HistoryRenderer(console).print_chain(chain)
