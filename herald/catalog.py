"""Catalog files — load and export the configuration the engine reads.

A catalog file is a JSON object with one list per entity kind::

    {
      "channels": [...], "events": [...], "roles": [...], "staff": [...],
      "role_notifications": [...],
      "escalation_rules": [...], "routing_rules": [...],
      "templates": [...], "applications": [...]
    }

Every entity goes through ``ConfigurationService`` on load, so a file
that references unknown ids or describes a cyclic escalation graph is
rejected with ``ConfigurationError``.  The built-in demo catalog
(``herald/data/demo_catalog.json``) mirrors a small onboarding desk.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime
from importlib.resources import files
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from herald.admin import ConfigurationService
from herald.core.errors import ConfigurationError
from herald.models.applications import Application
from herald.models.channels import Channel
from herald.models.escalation import EscalationRule
from herald.models.events import OnboardingEvent
from herald.models.routing import RoutingRule
from herald.models.staff import RoleNotificationConfig, StaffMember, StaffRole
from herald.models.templates import MessageTemplate
from herald.store.memory import InMemoryCatalog

logger = logging.getLogger(__name__)

# Load order: every entity only references kinds loaded before it.
_SECTIONS: tuple[str, ...] = (
    "channels",
    "events",
    "roles",
    "staff",
    "role_notifications",
    "escalation_rules",
    "routing_rules",
    "templates",
    "applications",
)


def catalog_from_dict(
    data: dict[str, Any],
    *,
    clock: Callable[[], datetime] | None = None,
) -> InMemoryCatalog:
    """Build a validated ``InMemoryCatalog`` from parsed catalog data.

    Raises
    ------
    ConfigurationError
        If an entity is malformed or fails cross-reference validation.
    """
    unknown = set(data) - set(_SECTIONS)
    if unknown:
        raise ConfigurationError(f"Unknown catalog section(s): {', '.join(sorted(unknown))}")

    catalog = InMemoryCatalog()
    service = ConfigurationService(catalog, clock=clock)
    loaders: dict[str, tuple[type, Callable[[Any], Any]]] = {
        "channels": (Channel, service.create_channel),
        "events": (OnboardingEvent, service.create_event),
        "roles": (StaffRole, service.create_role),
        "staff": (StaffMember, service.create_staff_member),
        "role_notifications": (RoleNotificationConfig, service.create_role_notification),
        "escalation_rules": (EscalationRule, service.create_escalation_rule),
        "routing_rules": (RoutingRule, service.create_routing_rule),
        "templates": (MessageTemplate, service.create_template),
        "applications": (Application, catalog.save_application),
    }

    for section in _SECTIONS:
        model_cls, create = loaders[section]
        for raw in data.get(section, []):
            try:
                entity = model_cls.model_validate(raw)
            except ValidationError as exc:
                raise ConfigurationError(
                    f"Invalid entry in {section} ({raw.get('id', '?')}): {exc}"
                ) from exc
            create(entity)

    logger.debug(
        "Catalog built: %s",
        ", ".join(f"{s}={len(data.get(s, []))}" for s in _SECTIONS),
    )
    return catalog


def load_catalog(
    path: Path,
    *,
    clock: Callable[[], datetime] | None = None,
) -> InMemoryCatalog:
    """Load and validate a catalog JSON file."""
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Catalog file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Catalog file {path} is not valid JSON: {exc}") from exc
    catalog = catalog_from_dict(data, clock=clock)
    logger.info("Loaded catalog from %s", path)
    return catalog


def load_demo_catalog(
    *,
    clock: Callable[[], datetime] | None = None,
) -> InMemoryCatalog:
    """Return a fresh copy of the built-in demo catalog."""
    raw = (files("herald") / "data" / "demo_catalog.json").read_text(encoding="utf-8")
    return catalog_from_dict(json.loads(raw), clock=clock)


def dump_catalog(catalog: InMemoryCatalog, path: Path) -> None:
    """Write *catalog* to *path* in the format ``load_catalog`` reads."""
    data = {
        "channels": catalog.list_channels(),
        "events": catalog.list_events(),
        "roles": catalog.list_roles(),
        "staff": catalog.list_staff(),
        "role_notifications": catalog.list_role_notifications(),
        "escalation_rules": catalog.list_escalation_rules(),
        "routing_rules": catalog.list_routing_rules(),
        "templates": catalog.list_templates(),
        "applications": catalog.list_applications(),
    }
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(
            {k: [json.loads(m.model_dump_json()) for m in v] for k, v in data.items()},
            indent=2,
        ),
        encoding="utf-8",
    )
    logger.debug("Wrote catalog to %s", path)
