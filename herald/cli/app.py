"""Main Typer application — imports and registers all CLI commands.

Entry point: ``herald`` (configured via pyproject.toml project.scripts).
"""

from __future__ import annotations

import typer

from herald.cli.commands.catalog_cmd import catalog_cmd
from herald.cli.commands.demo import demo_cmd
from herald.cli.commands.logs import chain_cmd, logs_cmd
from herald.cli.commands.sweep import sweep_cmd
from herald.cli.commands.trigger import trigger_cmd
from herald.cli.commands.webhook import webhook_cmd
from herald.config import settings
from herald.logging_setup import configure_logging

app = typer.Typer(
    name="herald",
    help="Herald: onboarding notifications with channel escalation.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None, "--log-level", help="Logging level (defaults to HERALD_LOG_LEVEL)."
    ),
) -> None:
    """Configure logging before any command runs."""
    level = log_level or ("DEBUG" if settings.debug else settings.log_level)
    configure_logging(level)


# Register subcommands
app.command(name="demo", help="Run the onboarding demo with simulated time.")(demo_cmd)
app.command(name="trigger", help="Fire an event for an application.")(trigger_cmd)
app.command(name="sweep", help="Escalate due, unanswered messages.")(sweep_cmd)
app.command(name="webhook", help="Apply a provider delivery callback.")(webhook_cmd)
app.command(name="logs", help="Show message history.")(logs_cmd)
app.command(name="chain", help="Show a message's escalation chain.")(chain_cmd)
app.command(name="catalog", help="Show or export the configured catalog.")(catalog_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
