"""Store protocols — the seams between the engine and its backing storage.

Every store the engine touches is expressed as a ``Protocol`` so a real
deployment can back it with any persistent engine and tests can use
isolated in-memory instances.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from herald.models.applications import Application
from herald.models.channels import Channel
from herald.models.escalation import EscalationRule, EscalationWatch, WatchState
from herald.models.events import OnboardingEvent
from herald.models.messages import MessageLog, MessageStatus
from herald.models.routing import RecipientType, RoutingRule
from herald.models.staff import RoleNotificationConfig, StaffMember, StaffRole
from herald.models.templates import MessageTemplate


@runtime_checkable
class ConfigStore(Protocol):
    """Operator-edited configuration: channels, events, rules, templates.

    ``list_*`` methods return entities in insertion order.  ``save_*``
    inserts or replaces by id; a replaced entity keeps its original
    position.  ``delete_*`` returns False when the id is unknown.
    """

    def get_channel(self, channel_id: str) -> Channel | None: ...
    def list_channels(self) -> list[Channel]: ...
    def save_channel(self, channel: Channel) -> Channel: ...
    def delete_channel(self, channel_id: str) -> bool: ...

    def get_event(self, event_id: str) -> OnboardingEvent | None: ...
    def list_events(self) -> list[OnboardingEvent]: ...
    def save_event(self, event: OnboardingEvent) -> OnboardingEvent: ...
    def delete_event(self, event_id: str) -> bool: ...

    def get_routing_rule(self, rule_id: str) -> RoutingRule | None: ...
    def list_routing_rules(self, event_id: str | None = None) -> list[RoutingRule]: ...
    def save_routing_rule(self, rule: RoutingRule) -> RoutingRule: ...
    def delete_routing_rule(self, rule_id: str) -> bool: ...

    def get_escalation_rule(self, rule_id: str) -> EscalationRule | None: ...
    def list_escalation_rules(self, event_id: str | None = None) -> list[EscalationRule]: ...
    def save_escalation_rule(self, rule: EscalationRule) -> EscalationRule: ...
    def delete_escalation_rule(self, rule_id: str) -> bool: ...

    def get_template(self, template_id: str) -> MessageTemplate | None: ...
    def list_templates(self, event_id: str | None = None) -> list[MessageTemplate]: ...
    def find_templates(
        self, event_id: str, channel_id: str, recipient_type: RecipientType
    ) -> list[MessageTemplate]: ...
    def save_template(self, template: MessageTemplate) -> MessageTemplate: ...
    def delete_template(self, template_id: str) -> bool: ...


@runtime_checkable
class ApplicationStore(Protocol):
    """Read access to applications owned by the onboarding workflow."""

    def get_application(self, application_id: str) -> Application | None: ...
    def list_applications(self) -> list[Application]: ...


@runtime_checkable
class StaffStore(Protocol):
    """Read access to staff, roles, contact preferences and role switches."""

    def get_staff_member(self, staff_id: str) -> StaffMember | None: ...
    def list_staff(self) -> list[StaffMember]: ...
    def get_role(self, role_id: str) -> StaffRole | None: ...
    def list_roles(self) -> list[StaffRole]: ...
    def list_role_notifications(
        self, event_id: str | None = None
    ) -> list[RoleNotificationConfig]: ...


@runtime_checkable
class MessageLogStore(Protocol):
    """Append-mostly audit trail of messages plus escalation watches.

    ``append`` is the only way to add a log.  ``update_log`` is a
    compare-and-set: it replaces the row only if its stored status still
    equals *expected_status*, raising ``ConcurrencyConflictError``
    otherwise.  There is no delete.
    """

    def append(self, log: MessageLog) -> MessageLog: ...
    def get_log(self, log_id: str) -> MessageLog | None: ...
    def update_log(self, log: MessageLog, expected_status: MessageStatus) -> MessageLog: ...
    def list_logs(self, application_id: str | None = None) -> list[MessageLog]: ...
    def list_chain(self, origin_id: str) -> list[MessageLog]: ...

    def save_watch(self, watch: EscalationWatch) -> EscalationWatch: ...
    def get_watch(self, log_id: str) -> EscalationWatch | None: ...
    def list_due_watches(self, now: datetime) -> list[EscalationWatch]: ...
    def list_watches(
        self,
        application_id: str | None = None,
        state: WatchState | None = None,
    ) -> list[EscalationWatch]: ...
    def transition_watch(
        self,
        log_id: str,
        expected: WatchState,
        new_state: WatchState,
        reason: str | None = None,
    ) -> bool: ...
