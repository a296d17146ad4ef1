"""Configuration administration — validated CRUD over the catalog.

Every write goes through ``ConfigurationService`` so that the catalog the
engine reads is always internally consistent:

- referenced event, channel and role ids exist;
- escalation rules never point a channel at itself, at most one active
  rule leaves a channel per event, and an event's escalation graph stays
  acyclic;
- a routing rule's ``escalation_channel_id`` agrees with the active
  escalation rule for the same ``(event_id, channel_id)``;
- event codes are unique and immutable;
- a role has at most one notification switch per event;
- template ``variables`` are re-derived and ``updated_at`` is stamped on
  every write.

Deleting an entity that is still referenced raises ``ConfigurationError``.
Deleting a role or an event also drops its notification switches.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from herald.core.errors import ConfigurationError
from herald.models.channels import Channel
from herald.models.escalation import EscalationRule
from herald.models.events import OnboardingEvent
from herald.models.routing import RecipientType, RoutingRule
from herald.models.staff import RoleNotificationConfig, StaffMember, StaffRole
from herald.models.templates import MessageTemplate
from herald.store.memory import InMemoryCatalog

logger = logging.getLogger(__name__)

_M = TypeVar("_M", bound=BaseModel)


def _apply(model: _M, changes: dict[str, Any]) -> _M:
    """Return *model* with *changes* applied, re-running validation."""
    unknown = set(changes) - set(type(model).model_fields)
    if unknown:
        raise ConfigurationError(
            f"Unknown field(s) for {type(model).__name__}: {', '.join(sorted(unknown))}"
        )
    try:
        return type(model).model_validate({**model.model_dump(), **changes})
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid {type(model).__name__}: {exc}") from exc


def has_cycle(edges: Iterable[tuple[str, str]]) -> bool:
    """Return True if the directed graph given by *edges* has a cycle.

    Kahn's algorithm: a graph is acyclic iff every node can be removed in
    topological order.
    """
    successors: dict[str, list[str]] = {}
    in_degree: dict[str, int] = {}
    for src, dst in edges:
        successors.setdefault(src, []).append(dst)
        successors.setdefault(dst, [])
        in_degree[dst] = in_degree.get(dst, 0) + 1
        in_degree.setdefault(src, 0)

    queue = deque(node for node, deg in in_degree.items() if deg == 0)
    visited = 0
    while queue:
        node = queue.popleft()
        visited += 1
        for nxt in successors[node]:
            in_degree[nxt] -= 1
            if in_degree[nxt] == 0:
                queue.append(nxt)
    return visited != len(in_degree)


class ConfigurationService:
    """Validated create/read/update/delete over an ``InMemoryCatalog``.

    Parameters
    ----------
    catalog:
        The catalog the engine reads.  Writes are applied in place.
    clock:
        Returns "now" for template ``updated_at`` stamps.
    """

    def __init__(
        self,
        catalog: InMemoryCatalog,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._catalog = catalog
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def catalog(self) -> InMemoryCatalog:
        return self._catalog

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    def _require_event(self, event_id: str) -> OnboardingEvent:
        event = self._catalog.get_event(event_id)
        if event is None:
            raise ConfigurationError(f"Unknown event: {event_id}")
        return event

    def _require_channel(self, channel_id: str) -> Channel:
        channel = self._catalog.get_channel(channel_id)
        if channel is None:
            raise ConfigurationError(f"Unknown channel: {channel_id}")
        return channel

    def _require_roles(self, role_ids: Iterable[str]) -> None:
        missing = [r for r in role_ids if self._catalog.get_role(r) is None]
        if missing:
            raise ConfigurationError(f"Unknown role(s): {', '.join(missing)}")

    @staticmethod
    def _require_absent(existing: BaseModel | None, kind: str, entity_id: str) -> None:
        if existing is not None:
            raise ConfigurationError(f"{kind} {entity_id} already exists")

    @staticmethod
    def _require_present(existing: _M | None, kind: str, entity_id: str) -> _M:
        if existing is None:
            raise ConfigurationError(f"Unknown {kind.lower()}: {entity_id}")
        return existing

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    def list_channels(self) -> list[Channel]:
        return self._catalog.list_channels()

    def get_channel(self, channel_id: str) -> Channel | None:
        return self._catalog.get_channel(channel_id)

    def create_channel(self, channel: Channel) -> Channel:
        self._require_absent(self._catalog.get_channel(channel.id), "Channel", channel.id)
        logger.info("Created channel %s (%s)", channel.id, channel.type.value)
        return self._catalog.save_channel(channel)

    def update_channel(self, channel_id: str, **changes: Any) -> Channel:
        current = self._require_present(
            self._catalog.get_channel(channel_id), "Channel", channel_id
        )
        if changes.get("id", channel_id) != channel_id:
            raise ConfigurationError("Channel id is immutable")
        return self._catalog.save_channel(_apply(current, changes))

    def delete_channel(self, channel_id: str) -> bool:
        in_use = [
            r.id
            for r in self._catalog.list_routing_rules()
            if channel_id in (r.channel_id, r.escalation_channel_id)
        ] + [
            r.id
            for r in self._catalog.list_escalation_rules()
            if channel_id in (r.from_channel_id, r.to_channel_id)
        ] + [t.id for t in self._catalog.list_templates() if t.channel_id == channel_id]
        if in_use:
            raise ConfigurationError(
                f"Channel {channel_id} is referenced by {', '.join(in_use)}"
            )
        return self._catalog.delete_channel(channel_id)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def list_events(self) -> list[OnboardingEvent]:
        return self._catalog.list_events()

    def get_event(self, event_id: str) -> OnboardingEvent | None:
        return self._catalog.get_event(event_id)

    def create_event(self, event: OnboardingEvent) -> OnboardingEvent:
        self._require_absent(self._catalog.get_event(event.id), "Event", event.id)
        clash = [e.id for e in self._catalog.list_events() if e.code == event.code]
        if clash:
            raise ConfigurationError(
                f"Event code {event.code} is already used by {clash[0]}"
            )
        logger.info("Created event %s (%s)", event.id, event.code)
        return self._catalog.save_event(event)

    def update_event(self, event_id: str, **changes: Any) -> OnboardingEvent:
        current = self._require_present(self._catalog.get_event(event_id), "Event", event_id)
        if changes.get("code", current.code) != current.code:
            raise ConfigurationError(f"Event code {current.code} is immutable")
        if changes.get("id", event_id) != event_id:
            raise ConfigurationError("Event id is immutable")
        return self._catalog.save_event(_apply(current, changes))

    def delete_event(self, event_id: str) -> bool:
        in_use = (
            [r.id for r in self._catalog.list_routing_rules(event_id)]
            + [r.id for r in self._catalog.list_escalation_rules(event_id)]
            + [t.id for t in self._catalog.list_templates(event_id)]
        )
        if in_use:
            raise ConfigurationError(
                f"Event {event_id} is referenced by {', '.join(in_use)}"
            )
        self._drop_role_notifications(event_id=event_id)
        return self._catalog.delete_event(event_id)

    # ------------------------------------------------------------------
    # Routing rules
    # ------------------------------------------------------------------

    def list_routing_rules(self, event_id: str | None = None) -> list[RoutingRule]:
        return self._catalog.list_routing_rules(event_id)

    def get_routing_rule(self, rule_id: str) -> RoutingRule | None:
        return self._catalog.get_routing_rule(rule_id)

    def _validate_routing_rule(self, rule: RoutingRule) -> None:
        self._require_event(rule.event_id)
        self._require_channel(rule.channel_id)
        self._require_roles(rule.staff_role_ids)
        if rule.recipient_type == RecipientType.INTERNAL_STAFF and not rule.staff_role_ids:
            logger.warning(
                "Routing rule %s targets internal staff but names no roles; "
                "it has no recipients",
                rule.id,
            )
        if rule.wait_days_before_escalation < 0:
            raise ConfigurationError(
                f"Routing rule {rule.id}: wait_days_before_escalation must be >= 0"
            )
        if rule.escalation_channel_id is None:
            return
        self._require_channel(rule.escalation_channel_id)
        if rule.escalation_channel_id == rule.channel_id:
            raise ConfigurationError(
                f"Routing rule {rule.id} escalates {rule.channel_id} to itself"
            )
        for esc in self._catalog.list_escalation_rules(rule.event_id):
            if (
                esc.is_active
                and esc.from_channel_id == rule.channel_id
                and esc.to_channel_id != rule.escalation_channel_id
            ):
                raise ConfigurationError(
                    f"Routing rule {rule.id} escalates {rule.channel_id} to "
                    f"{rule.escalation_channel_id} but escalation rule {esc.id} "
                    f"escalates it to {esc.to_channel_id}"
                )

    def create_routing_rule(self, rule: RoutingRule) -> RoutingRule:
        self._require_absent(self._catalog.get_routing_rule(rule.id), "Routing rule", rule.id)
        self._validate_routing_rule(rule)
        logger.info(
            "Created routing rule %s: %s -> %s (%s)",
            rule.id,
            rule.event_id,
            rule.channel_id,
            rule.recipient_type.value,
        )
        return self._catalog.save_routing_rule(rule)

    def update_routing_rule(self, rule_id: str, **changes: Any) -> RoutingRule:
        current = self._require_present(
            self._catalog.get_routing_rule(rule_id), "Routing rule", rule_id
        )
        updated = _apply(current, changes)
        if updated.id != rule_id:
            raise ConfigurationError("Routing rule id is immutable")
        self._validate_routing_rule(updated)
        return self._catalog.save_routing_rule(updated)

    def delete_routing_rule(self, rule_id: str) -> bool:
        return self._catalog.delete_routing_rule(rule_id)

    # ------------------------------------------------------------------
    # Escalation rules
    # ------------------------------------------------------------------

    def list_escalation_rules(self, event_id: str | None = None) -> list[EscalationRule]:
        return self._catalog.list_escalation_rules(event_id)

    def get_escalation_rule(self, rule_id: str) -> EscalationRule | None:
        return self._catalog.get_escalation_rule(rule_id)

    def _validate_escalation_rule(self, rule: EscalationRule) -> None:
        self._require_event(rule.event_id)
        self._require_channel(rule.from_channel_id)
        self._require_channel(rule.to_channel_id)
        if rule.from_channel_id == rule.to_channel_id:
            raise ConfigurationError(
                f"Escalation rule {rule.id} escalates {rule.from_channel_id} to itself"
            )
        if not rule.is_active:
            return

        others = [
            r
            for r in self._catalog.list_escalation_rules(rule.event_id)
            if r.is_active and r.id != rule.id
        ]
        for other in others:
            if other.from_channel_id == rule.from_channel_id:
                raise ConfigurationError(
                    f"Escalation rule {other.id} already escalates "
                    f"{rule.from_channel_id} for event {rule.event_id}"
                )
        edges = [(r.from_channel_id, r.to_channel_id) for r in others]
        edges.append((rule.from_channel_id, rule.to_channel_id))
        if has_cycle(edges):
            raise ConfigurationError(
                f"Escalation rule {rule.id} creates a cycle in the escalation "
                f"graph of event {rule.event_id}"
            )

        for routing in self._catalog.list_routing_rules(rule.event_id):
            if (
                routing.is_active
                and routing.channel_id == rule.from_channel_id
                and routing.escalation_channel_id is not None
                and routing.escalation_channel_id != rule.to_channel_id
            ):
                raise ConfigurationError(
                    f"Escalation rule {rule.id} escalates {rule.from_channel_id} to "
                    f"{rule.to_channel_id} but routing rule {routing.id} "
                    f"escalates it to {routing.escalation_channel_id}"
                )

    def create_escalation_rule(self, rule: EscalationRule) -> EscalationRule:
        self._require_absent(
            self._catalog.get_escalation_rule(rule.id), "Escalation rule", rule.id
        )
        self._validate_escalation_rule(rule)
        logger.info(
            "Created escalation rule %s: %s -> %s after %dd (max %d)",
            rule.id,
            rule.from_channel_id,
            rule.to_channel_id,
            rule.wait_days,
            rule.max_attempts,
        )
        return self._catalog.save_escalation_rule(rule)

    def update_escalation_rule(self, rule_id: str, **changes: Any) -> EscalationRule:
        current = self._require_present(
            self._catalog.get_escalation_rule(rule_id), "Escalation rule", rule_id
        )
        updated = _apply(current, changes)
        if updated.id != rule_id:
            raise ConfigurationError("Escalation rule id is immutable")
        self._validate_escalation_rule(updated)
        return self._catalog.save_escalation_rule(updated)

    def delete_escalation_rule(self, rule_id: str) -> bool:
        return self._catalog.delete_escalation_rule(rule_id)

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def list_templates(self, event_id: str | None = None) -> list[MessageTemplate]:
        return self._catalog.list_templates(event_id)

    def get_template(self, template_id: str) -> MessageTemplate | None:
        return self._catalog.get_template(template_id)

    def _stamp(self, template: MessageTemplate, *, created: bool) -> MessageTemplate:
        self._require_event(template.event_id)
        self._require_channel(template.channel_id)
        now = self._clock()
        changes: dict[str, Any] = {"updated_at": now}
        if created:
            changes["created_at"] = now
        return _apply(template, changes)

    def create_template(self, template: MessageTemplate) -> MessageTemplate:
        self._require_absent(
            self._catalog.get_template(template.id), "Template", template.id
        )
        stamped = self._stamp(template, created=True)
        logger.info(
            "Created template %s for %s/%s/%s (variables: %s)",
            stamped.id,
            stamped.event_id,
            stamped.channel_id,
            stamped.recipient_type.value,
            ", ".join(stamped.variables) or "none",
        )
        return self._catalog.save_template(stamped)

    def update_template(self, template_id: str, **changes: Any) -> MessageTemplate:
        current = self._require_present(
            self._catalog.get_template(template_id), "Template", template_id
        )
        updated = _apply(current, changes)
        if updated.id != template_id:
            raise ConfigurationError("Template id is immutable")
        return self._catalog.save_template(self._stamp(updated, created=False))

    def delete_template(self, template_id: str) -> bool:
        return self._catalog.delete_template(template_id)

    # ------------------------------------------------------------------
    # Roles & staff
    # ------------------------------------------------------------------

    def list_roles(self) -> list[StaffRole]:
        return self._catalog.list_roles()

    def create_role(self, role: StaffRole) -> StaffRole:
        self._require_absent(self._catalog.get_role(role.id), "Role", role.id)
        return self._catalog.save_role(role)

    def update_role(self, role_id: str, **changes: Any) -> StaffRole:
        current = self._require_present(self._catalog.get_role(role_id), "Role", role_id)
        updated = _apply(current, changes)
        if updated.id != role_id:
            raise ConfigurationError("Role id is immutable")
        return self._catalog.save_role(updated)

    def delete_role(self, role_id: str) -> bool:
        in_use = [
            r.id for r in self._catalog.list_routing_rules() if role_id in r.staff_role_ids
        ] + [s.id for s in self._catalog.list_staff() if role_id in s.role_ids]
        if in_use:
            raise ConfigurationError(f"Role {role_id} is referenced by {', '.join(in_use)}")
        self._drop_role_notifications(role_id=role_id)
        return self._catalog.delete_role(role_id)

    def list_staff(self) -> list[StaffMember]:
        return self._catalog.list_staff()

    def create_staff_member(self, member: StaffMember) -> StaffMember:
        self._require_absent(self._catalog.get_staff_member(member.id), "Staff member", member.id)
        self._require_roles(member.role_ids)
        return self._catalog.save_staff_member(member)

    def update_staff_member(self, staff_id: str, **changes: Any) -> StaffMember:
        current = self._require_present(
            self._catalog.get_staff_member(staff_id), "Staff member", staff_id
        )
        updated = _apply(current, changes)
        if updated.id != staff_id:
            raise ConfigurationError("Staff member id is immutable")
        self._require_roles(updated.role_ids)
        return self._catalog.save_staff_member(updated)

    def delete_staff_member(self, staff_id: str) -> bool:
        return self._catalog.delete_staff_member(staff_id)

    # ------------------------------------------------------------------
    # Role notification switches
    # ------------------------------------------------------------------

    def list_role_notifications(
        self, event_id: str | None = None
    ) -> list[RoleNotificationConfig]:
        return self._catalog.list_role_notifications(event_id)

    def is_role_notified(self, role_id: str, event_id: str) -> bool:
        """True unless a config switches *role_id* off for *event_id*."""
        config = self._catalog.get_role_notification(role_id, event_id)
        return config is None or config.is_enabled

    def create_role_notification(
        self, config: RoleNotificationConfig
    ) -> RoleNotificationConfig:
        self._require_roles([config.role_id])
        self._require_event(config.event_id)
        existing = self._catalog.get_role_notification(config.role_id, config.event_id)
        if existing is not None:
            raise ConfigurationError(
                f"Role {config.role_id} already has notification config {existing.id} "
                f"for event {config.event_id}"
            )
        return self._catalog.save_role_notification(config)

    def set_role_notification(
        self, role_id: str, event_id: str, is_enabled: bool
    ) -> RoleNotificationConfig:
        """Switch notifications for one role and event, creating the config if needed."""
        existing = self._catalog.get_role_notification(role_id, event_id)
        if existing is None:
            return self.create_role_notification(
                RoleNotificationConfig(role_id=role_id, event_id=event_id, is_enabled=is_enabled)
            )
        logger.info(
            "Notifications for role %s on %s %s",
            role_id,
            event_id,
            "enabled" if is_enabled else "disabled",
        )
        return self._catalog.save_role_notification(
            existing.model_copy(update={"is_enabled": is_enabled})
        )

    def delete_role_notification(self, config_id: str) -> bool:
        return self._catalog.delete_role_notification(config_id)

    def _drop_role_notifications(
        self, *, role_id: str | None = None, event_id: str | None = None
    ) -> None:
        for config in self._catalog.list_role_notifications():
            if config.role_id == role_id or config.event_id == event_id:
                self._catalog.delete_role_notification(config.id)
