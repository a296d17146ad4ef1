"""Shared wiring for CLI commands: catalog, log store and coordinator."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import typer
from rich.console import Console

from herald.catalog import load_catalog, load_demo_catalog
from herald.config import settings
from herald.core.coordinator import EventTriggerCoordinator
from herald.core.errors import ConfigurationError
from herald.store.base import MessageLogStore
from herald.store.memory import InMemoryCatalog, InMemoryMessageLogStore
from herald.store.sqlite import SqliteMessageLogStore

CatalogOption = typer.Option(
    None,
    "--catalog",
    "-c",
    help="Catalog JSON file (defaults to HERALD_CATALOG_PATH, then the demo catalog).",
)
DbOption = typer.Option(
    None,
    "--db",
    help="Message log SQLite database (defaults to HERALD_LOG_DB_PATH).",
)


def open_catalog(path: Path | None, console: Console) -> InMemoryCatalog:
    path = path or settings.catalog_path
    try:
        return load_catalog(path) if path else load_demo_catalog()
    except ConfigurationError as exc:
        console.print(f"[bold red]Invalid catalog:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc


def open_log_store(path: Path | None, *, memory: bool = False) -> MessageLogStore:
    if memory:
        return InMemoryMessageLogStore()
    return SqliteMessageLogStore(path or settings.log_db_path)


def build_coordinator(
    catalog_path: Path | None,
    db_path: Path | None,
    console: Console,
    *,
    memory: bool = False,
    clock: Callable[[], datetime] | None = None,
) -> EventTriggerCoordinator:
    catalog = open_catalog(catalog_path, console)
    return EventTriggerCoordinator(
        catalog,
        catalog,
        catalog,
        open_log_store(db_path, memory=memory),
        settings=settings,
        clock=clock,
    )
