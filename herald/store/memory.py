"""In-memory stores — isolated per instance, safe for concurrent use.

Each instance owns its own dictionaries (no module-level state), so
parallel tests never share data.  A single ``threading.Lock`` per store
makes every read-modify-write atomic.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone

from herald.core.errors import ConcurrencyConflictError, MessageNotFoundError
from herald.models.applications import Application
from herald.models.channels import Channel
from herald.models.escalation import EscalationRule, EscalationWatch, WatchState
from herald.models.events import OnboardingEvent
from herald.models.messages import MessageLog, MessageStatus
from herald.models.routing import RecipientType, RoutingRule
from herald.models.staff import RoleNotificationConfig, StaffMember, StaffRole
from herald.models.templates import MessageTemplate


def _remove(table: dict, key: str) -> bool:
    return table.pop(key, None) is not None


class InMemoryCatalog:
    """Configuration, application and staff store held in memory.

    Implements ``ConfigStore``, ``ApplicationStore`` and ``StaffStore``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._channels: dict[str, Channel] = {}
        self._events: dict[str, OnboardingEvent] = {}
        self._routing_rules: dict[str, RoutingRule] = {}
        self._escalation_rules: dict[str, EscalationRule] = {}
        self._templates: dict[str, MessageTemplate] = {}
        self._applications: dict[str, Application] = {}
        self._staff: dict[str, StaffMember] = {}
        self._roles: dict[str, StaffRole] = {}
        self._role_notifications: dict[str, RoleNotificationConfig] = {}

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    def get_channel(self, channel_id: str) -> Channel | None:
        return self._channels.get(channel_id)

    def list_channels(self) -> list[Channel]:
        with self._lock:
            return list(self._channels.values())

    def save_channel(self, channel: Channel) -> Channel:
        with self._lock:
            self._channels[channel.id] = channel
        return channel

    def delete_channel(self, channel_id: str) -> bool:
        with self._lock:
            return _remove(self._channels, channel_id)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def get_event(self, event_id: str) -> OnboardingEvent | None:
        return self._events.get(event_id)

    def list_events(self) -> list[OnboardingEvent]:
        with self._lock:
            return list(self._events.values())

    def save_event(self, event: OnboardingEvent) -> OnboardingEvent:
        with self._lock:
            self._events[event.id] = event
        return event

    def delete_event(self, event_id: str) -> bool:
        with self._lock:
            return _remove(self._events, event_id)

    # ------------------------------------------------------------------
    # Routing rules
    # ------------------------------------------------------------------

    def get_routing_rule(self, rule_id: str) -> RoutingRule | None:
        return self._routing_rules.get(rule_id)

    def list_routing_rules(self, event_id: str | None = None) -> list[RoutingRule]:
        with self._lock:
            rules = list(self._routing_rules.values())
        if event_id is None:
            return rules
        return [r for r in rules if r.event_id == event_id]

    def save_routing_rule(self, rule: RoutingRule) -> RoutingRule:
        with self._lock:
            self._routing_rules[rule.id] = rule
        return rule

    def delete_routing_rule(self, rule_id: str) -> bool:
        with self._lock:
            return _remove(self._routing_rules, rule_id)

    # ------------------------------------------------------------------
    # Escalation rules
    # ------------------------------------------------------------------

    def get_escalation_rule(self, rule_id: str) -> EscalationRule | None:
        return self._escalation_rules.get(rule_id)

    def list_escalation_rules(self, event_id: str | None = None) -> list[EscalationRule]:
        with self._lock:
            rules = list(self._escalation_rules.values())
        if event_id is None:
            return rules
        return [r for r in rules if r.event_id == event_id]

    def save_escalation_rule(self, rule: EscalationRule) -> EscalationRule:
        with self._lock:
            self._escalation_rules[rule.id] = rule
        return rule

    def delete_escalation_rule(self, rule_id: str) -> bool:
        with self._lock:
            return _remove(self._escalation_rules, rule_id)

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def get_template(self, template_id: str) -> MessageTemplate | None:
        return self._templates.get(template_id)

    def list_templates(self, event_id: str | None = None) -> list[MessageTemplate]:
        with self._lock:
            templates = list(self._templates.values())
        if event_id is None:
            return templates
        return [t for t in templates if t.event_id == event_id]

    def find_templates(
        self, event_id: str, channel_id: str, recipient_type: RecipientType
    ) -> list[MessageTemplate]:
        key = (event_id, channel_id, RecipientType(recipient_type))
        with self._lock:
            return [t for t in self._templates.values() if t.key == key]

    def save_template(self, template: MessageTemplate) -> MessageTemplate:
        with self._lock:
            self._templates[template.id] = template
        return template

    def delete_template(self, template_id: str) -> bool:
        with self._lock:
            return _remove(self._templates, template_id)

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------

    def get_application(self, application_id: str) -> Application | None:
        return self._applications.get(application_id)

    def list_applications(self) -> list[Application]:
        with self._lock:
            return list(self._applications.values())

    def save_application(self, application: Application) -> Application:
        with self._lock:
            self._applications[application.id] = application
        return application

    # ------------------------------------------------------------------
    # Staff & roles
    # ------------------------------------------------------------------

    def get_staff_member(self, staff_id: str) -> StaffMember | None:
        return self._staff.get(staff_id)

    def list_staff(self) -> list[StaffMember]:
        with self._lock:
            return list(self._staff.values())

    def save_staff_member(self, member: StaffMember) -> StaffMember:
        with self._lock:
            self._staff[member.id] = member
        return member

    def delete_staff_member(self, staff_id: str) -> bool:
        with self._lock:
            return _remove(self._staff, staff_id)

    def get_role(self, role_id: str) -> StaffRole | None:
        return self._roles.get(role_id)

    def list_roles(self) -> list[StaffRole]:
        with self._lock:
            return list(self._roles.values())

    def save_role(self, role: StaffRole) -> StaffRole:
        with self._lock:
            self._roles[role.id] = role
        return role

    def delete_role(self, role_id: str) -> bool:
        with self._lock:
            return _remove(self._roles, role_id)

    # ------------------------------------------------------------------
    # Role notification switches
    # ------------------------------------------------------------------

    def get_role_notification(
        self, role_id: str, event_id: str
    ) -> RoleNotificationConfig | None:
        with self._lock:
            for config in self._role_notifications.values():
                if config.role_id == role_id and config.event_id == event_id:
                    return config
        return None

    def list_role_notifications(
        self, event_id: str | None = None
    ) -> list[RoleNotificationConfig]:
        with self._lock:
            configs = list(self._role_notifications.values())
        if event_id is None:
            return configs
        return [c for c in configs if c.event_id == event_id]

    def save_role_notification(
        self, config: RoleNotificationConfig
    ) -> RoleNotificationConfig:
        with self._lock:
            self._role_notifications[config.id] = config
        return config

    def delete_role_notification(self, config_id: str) -> bool:
        with self._lock:
            return _remove(self._role_notifications, config_id)


class InMemoryMessageLogStore:
    """Message logs and escalation watches held in memory.

    Implements ``MessageLogStore``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._logs: dict[str, MessageLog] = {}
        self._watches: dict[str, EscalationWatch] = {}

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------

    def append(self, log: MessageLog) -> MessageLog:
        with self._lock:
            if log.id in self._logs:
                raise ValueError(f"Message log {log.id} already exists")
            self._logs[log.id] = log
        return log

    def get_log(self, log_id: str) -> MessageLog | None:
        with self._lock:
            return self._logs.get(log_id)

    def update_log(self, log: MessageLog, expected_status: MessageStatus) -> MessageLog:
        with self._lock:
            stored = self._logs.get(log.id)
            if stored is None:
                raise MessageNotFoundError(log.id)
            if stored.status != expected_status:
                raise ConcurrencyConflictError(
                    f"Message {log.id} is {stored.status.value}, "
                    f"expected {expected_status.value}"
                )
            self._logs[log.id] = log
        return log

    def list_logs(self, application_id: str | None = None) -> list[MessageLog]:
        with self._lock:
            logs = list(self._logs.values())
        if application_id is None:
            return logs
        return [m for m in logs if m.application_id == application_id]

    def list_chain(self, origin_id: str) -> list[MessageLog]:
        with self._lock:
            chain = [
                m
                for m in self._logs.values()
                if m.id == origin_id or m.escalation_origin == origin_id
            ]
        return sorted(chain, key=lambda m: m.escalation_attempt)

    # ------------------------------------------------------------------
    # Escalation watches
    # ------------------------------------------------------------------

    def save_watch(self, watch: EscalationWatch) -> EscalationWatch:
        with self._lock:
            self._watches[watch.log_id] = watch
        return watch

    def get_watch(self, log_id: str) -> EscalationWatch | None:
        with self._lock:
            return self._watches.get(log_id)

    def list_due_watches(self, now: datetime) -> list[EscalationWatch]:
        with self._lock:
            due = [
                w
                for w in self._watches.values()
                if w.state == WatchState.PENDING and w.due_at <= now
            ]
        return sorted(due, key=lambda w: w.due_at)

    def list_watches(
        self,
        application_id: str | None = None,
        state: WatchState | None = None,
    ) -> list[EscalationWatch]:
        with self._lock:
            watches = list(self._watches.values())
        return [
            w
            for w in watches
            if (application_id is None or w.application_id == application_id)
            and (state is None or w.state == state)
        ]

    def transition_watch(
        self,
        log_id: str,
        expected: WatchState,
        new_state: WatchState,
        reason: str | None = None,
    ) -> bool:
        with self._lock:
            watch = self._watches.get(log_id)
            if watch is None or watch.state != expected:
                return False
            self._watches[log_id] = watch.model_copy(
                update={
                    "state": new_state,
                    "reason": reason,
                    "updated_at": datetime.now(timezone.utc),
                }
            )
        return True
