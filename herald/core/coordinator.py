"""Event Trigger Coordinator — the entry point of the engine.

The coordinator wires together the RoutingResolver, TemplateRenderer,
StatusMachine, MessageDispatcher and EscalationScheduler over the stores
it is given, and exposes ``trigger(event_id, application_id)``.

Each routing target is processed on its own: a render or dispatch failure
for one target is logged with the target's identity and recorded in the
``TriggerReport``; the remaining targets still go out.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from herald.config import HeraldSettings
from herald.core.dispatch import MessageDispatcher
from herald.core.errors import ConfigurationError
from herald.core.escalation import EscalationScheduler
from herald.core.renderer import TemplateRenderer
from herald.core.resolver import RoutingResolver
from herald.core.status_machine import StatusMachine
from herald.core.webhooks import DeliveryWebhookReceiver
from herald.models.applications import TERMINAL_APPLICATION_STATUSES, ApplicationStatus
from herald.models.messages import MessageLog
from herald.models.routing import RoutingTarget
from herald.senders import SenderRegistry, default_registry
from herald.store.base import ApplicationStore, ConfigStore, MessageLogStore, StaffStore

logger = logging.getLogger(__name__)


class TargetFailure(BaseModel):
    """One routing target that could not be rendered or dispatched."""

    model_config = ConfigDict(frozen=True)

    target: RoutingTarget
    error_type: str
    message: str


class TriggerReport(BaseModel):
    """Outcome of one ``trigger`` call."""

    model_config = ConfigDict(frozen=True)

    event_id: str
    application_id: str
    logs: list[MessageLog] = []
    failures: list[TargetFailure] = []
    watched: list[str] = []  # log ids registered for escalation
    triggered_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def ok(self) -> bool:
        return not self.failures


class EventTriggerCoordinator:
    """Routes, renders, dispatches and registers messages for one event firing.

    Parameters
    ----------
    config_store:
        Channels, events, routing/escalation rules and templates.
    applications:
        Application store (read-only).
    staff:
        Staff/role store (read-only).
    logs:
        Message log and escalation watch store.
    senders:
        Channel sender registry.  Defaults to the bundled payload builders.
    settings:
        Runtime settings.  Uses defaults if not provided.
    clock:
        Returns "now"; shared by every subsystem so tests can simulate time.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        applications: ApplicationStore,
        staff: StaffStore,
        logs: MessageLogStore,
        *,
        senders: SenderRegistry | None = None,
        settings: HeraldSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings or HeraldSettings()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        self.config_store = config_store
        self.applications = applications
        self.staff = staff
        self.logs = logs
        self.senders = senders or default_registry(self.settings.default_sender_address)

        # Core subsystems
        self.resolver = RoutingResolver(config_store, applications, staff)
        self.renderer = TemplateRenderer(config_store, self.settings, clock=self.clock)
        self.status_machine = StatusMachine(logs)
        self.dispatcher = MessageDispatcher(
            logs, self.status_machine, self.senders, clock=self.clock
        )
        self.scheduler = EscalationScheduler(
            config_store,
            applications,
            staff,
            logs,
            self.renderer,
            self.dispatcher,
            clock=self.clock,
        )
        self.webhooks = DeliveryWebhookReceiver(self.status_machine, self.scheduler)

    # ------------------------------------------------------------------
    # Triggering
    # ------------------------------------------------------------------

    def trigger(self, event_id: str, application_id: str) -> list[MessageLog]:
        """Fire *event_id* for *application_id*; return the created logs.

        Raises
        ------
        ConfigurationError
            If the event is unknown or inactive, or the application is
            unknown.  Per-target errors never raise.
        """
        return self.trigger_with_report(event_id, application_id).logs

    def trigger_with_report(self, event_id: str, application_id: str) -> TriggerReport:
        """Like ``trigger`` but also returns per-target failures."""
        event = self.config_store.get_event(event_id)
        if event is None:
            raise ConfigurationError(f"Unknown event: {event_id}")
        if not event.is_active:
            raise ConfigurationError(f"Event {event.code} ({event_id}) is inactive")

        application = self.applications.get_application(application_id)
        if application is None:
            raise ConfigurationError(f"Unknown application: {application_id}")

        targets = self.resolver.resolve_targets(event_id, application_id)
        if not targets:
            logger.info(
                "No notification due for event=%s application=%s", event.code, application_id
            )
            return TriggerReport(event_id=event_id, application_id=application_id)

        logs: list[MessageLog] = []
        failures: list[TargetFailure] = []
        watched: list[str] = []

        for target in targets:
            try:
                content = self.renderer.render(
                    event_id, target.channel_id, target.recipient_type, application
                )
                log = self.dispatcher.dispatch(
                    target, content, event_id=event_id, application_id=application_id
                )
            except ConfigurationError as exc:
                logger.error(
                    "Target %s/%s (%s) skipped for event=%s application=%s: %s",
                    target.channel_id,
                    target.recipient_id,
                    target.recipient_type.value,
                    event.code,
                    application_id,
                    exc,
                )
                failures.append(
                    TargetFailure(
                        target=target, error_type=type(exc).__name__, message=str(exc)
                    )
                )
                continue
            except Exception as exc:  # noqa: BLE001
                logger.exception(
                    "Target %s/%s failed for event=%s application=%s",
                    target.channel_id,
                    target.recipient_id,
                    event.code,
                    application_id,
                )
                failures.append(
                    TargetFailure(
                        target=target, error_type=type(exc).__name__, message=str(exc)
                    )
                )
                continue

            logs.append(log)
            if self.scheduler.register(log) is not None:
                watched.append(log.id)

        logger.info(
            "Event %s for %s: %d sent, %d failed target(s), %d watched",
            event.code,
            application_id,
            len(logs),
            len(failures),
            len(watched),
        )
        return TriggerReport(
            event_id=event_id,
            application_id=application_id,
            logs=logs,
            failures=failures,
            watched=watched,
        )

    # ------------------------------------------------------------------
    # Workflow & scheduler hooks
    # ------------------------------------------------------------------

    def notify_application_status(
        self, application_id: str, status: ApplicationStatus
    ) -> int:
        """React to an onboarding status change reported by the workflow.

        Terminal statuses cancel every pending escalation of the
        application.  Returns the number of cancelled watches.
        """
        status = ApplicationStatus(status)
        if status not in TERMINAL_APPLICATION_STATUSES:
            return 0
        return self.scheduler.cancel_for_application(
            application_id, f"application is {status.value}"
        )

    def sweep(self, now: datetime | None = None) -> list[MessageLog]:
        """Run one escalation sweep."""
        return self.scheduler.sweep(now)
