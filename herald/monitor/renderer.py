"""Rich terminal renderer for message history.

Color scheme
------------
- dim         : queued
- cyan        : sent
- blue        : delivered
- green       : opened, clicked, replied
- bold red    : failed, bounced
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from herald.models.messages import MessageLog, MessageStatus

if TYPE_CHECKING:
    from herald.monitor.projection import (
        ApplicationHistory,
        DeliverySummary,
        MessageChain,
        MessageHistoryProjection,
    )


# ---------------------------------------------------------------------------
# Status -> Rich style mapping
# ---------------------------------------------------------------------------

_STATUS_STYLES: dict[MessageStatus, str] = {
    MessageStatus.QUEUED: "dim",
    MessageStatus.SENT: "cyan",
    MessageStatus.DELIVERED: "blue",
    MessageStatus.OPENED: "green",
    MessageStatus.CLICKED: "green",
    MessageStatus.REPLIED: "bold green",
    MessageStatus.FAILED: "bold red",
    MessageStatus.BOUNCED: "bold red",
}


def _status(status: MessageStatus) -> str:
    style = _STATUS_STYLES.get(status, "")
    return f"[{style}]{status.value.upper()}[/{style}]"


def _when(log: MessageLog) -> str:
    return log.sent_at.strftime("%Y-%m-%d %H:%M")


class HistoryRenderer:
    """Renders projection models as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def log_table(self, logs: list[MessageLog], *, title: str | None = None) -> Table:
        """Build a table with one row per message."""
        table = Table(title=title, show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Message", style="dim", no_wrap=True)
        table.add_column("Event")
        table.add_column("Channel")
        table.add_column("Recipient")
        table.add_column("Status", justify="center")
        table.add_column("Sent", no_wrap=True)
        table.add_column("Esc.", justify="right", width=5)

        for log in logs:
            escalation = (
                f"[yellow]{log.escalation_attempt}[/yellow]"
                if log.escalation_attempt
                else "[dim]0[/dim]"
            )
            table.add_row(
                log.id,
                log.event_id,
                log.channel_id,
                f"{log.recipient_name} [dim]({log.recipient_contact})[/dim]",
                _status(log.status),
                _when(log),
                escalation,
            )
        return table

    def summary_text(self, summary: DeliverySummary) -> Text:
        parts = [
            f"[bold]Messages:[/bold] {summary.total}",
            f"[bold]Responded:[/bold] {summary.responded}",
            f"[bold]Failed:[/bold] {summary.failed}",
            f"[bold]Escalated:[/bold] {summary.escalated}",
            f"[bold]Pending escalations:[/bold] {summary.pending_escalations}",
        ]
        if summary.total:
            parts.append(f"[bold]Response rate:[/bold] {summary.response_rate:.0%}")
        return Text.from_markup("  |  ".join(parts))

    # ------------------------------------------------------------------
    # Panels
    # ------------------------------------------------------------------

    def render_history(self, history: ApplicationHistory) -> Panel:
        """Render one application's history as a Panel."""
        table = self.log_table(history.logs)
        return Panel(
            Group(table, Text(""), self.summary_text(history.summary)),
            title=f"[bold]Message history: {history.application_id}[/bold]",
            subtitle=f"Generated: {history.generated_at.strftime('%Y-%m-%d %H:%M:%S UTC')}",
            border_style="blue",
            padding=(1, 2),
        )

    def render_chain(self, chain: MessageChain) -> Panel:
        """Render an escalation chain, one hop per row."""
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Hop", justify="right", width=4)
        table.add_column("Message", style="dim", no_wrap=True)
        table.add_column("Channel")
        table.add_column("Status", justify="center")
        table.add_column("Sent", no_wrap=True)
        table.add_column("Escalated from", style="dim")

        for hop in chain.hops:
            table.add_row(
                str(hop.escalation_attempt),
                hop.id,
                hop.channel_id,
                _status(hop.status),
                _when(hop),
                hop.escalated_from or "-",
            )

        if chain.watch is None:
            footer = "[dim]No escalation scheduled[/dim]"
        else:
            footer = (
                f"[bold]Escalation:[/bold] {chain.watch.state.value} "
                f"(due {chain.watch.due_at.strftime('%Y-%m-%d %H:%M')})"
            )
            if chain.watch.reason:
                footer += f" [dim]- {chain.watch.reason}[/dim]"

        return Panel(
            Group(table, Text(""), Text.from_markup(footer)),
            title=f"[bold]Chain {chain.origin_id}[/bold]",
            border_style="green" if chain.answered else "yellow",
            padding=(1, 2),
        )

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def print_history(self, history: ApplicationHistory) -> None:
        self.console.print(self.render_history(history))

    def print_chain(self, chain: MessageChain) -> None:
        self.console.print(self.render_chain(chain))

    def print_logs(self, logs: list[MessageLog], *, title: str | None = None) -> None:
        self.console.print(self.log_table(logs, title=title))

    def render_live(
        self,
        application_id: str,
        projection: MessageHistoryProjection,
        *,
        refresh_hz: float = 1.0,
    ) -> None:
        """Continuously re-render an application's history until Ctrl+C."""
        interval = 1.0 / max(refresh_hz, 0.1)
        with Live(console=self.console, refresh_per_second=refresh_hz) as live:
            try:
                while True:
                    live.update(self.render_history(projection.history(application_id)))
                    time.sleep(interval)
            except KeyboardInterrupt:
                live.update(self.render_history(projection.history(application_id)))
