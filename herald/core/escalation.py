"""Escalation Scheduler — retries unanswered messages on fallback channels.

There are no in-process timers.  Registering a message persists an
``EscalationWatch`` with ``due_at = sent_at + wait_days``; a periodic
``sweep()`` scans due watches and either escalates, cancels or skips each
one.  A watch leaves ``pending`` exactly once (compare-and-set in the
store), so repeated or concurrent sweeps never escalate a message twice.

Escalation edges come from active ``EscalationRule``s.  A routing rule with
an ``escalation_channel_id`` and a positive ``wait_days_before_escalation``
adds an implicit single-attempt edge from its channel when no escalation
rule already covers that channel for the event.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict

from herald.core.dispatch import MessageDispatcher
from herald.core.errors import ConfigurationError
from herald.core.renderer import TemplateRenderer
from herald.models.applications import Application
from herald.models.channels import ChannelType
from herald.models.escalation import EscalationWatch, WatchState
from herald.models.messages import (
    ESCALATION_ELIGIBLE_STATUSES,
    RESPONSE_STATUSES,
    MessageLog,
)
from herald.models.routing import RecipientType, RoutingTarget
from herald.store.base import ApplicationStore, ConfigStore, MessageLogStore, StaffStore

logger = logging.getLogger(__name__)


class EscalationEdge(BaseModel):
    """One usable hop in an event's escalation graph."""

    model_config = ConfigDict(frozen=True)

    event_id: str
    from_channel_id: str
    to_channel_id: str
    wait_days: int
    max_attempts: int
    rule_id: str | None = None  # None for an edge implied by a routing rule
    routing_rule_id: str | None = None


class _Skip(Exception):
    """Internal: the watch is closed without escalating."""

    def __init__(self, state: WatchState, reason: str) -> None:
        super().__init__(reason)
        self.state = state
        self.reason = reason


class EscalationScheduler:
    """Registers escalation watches and sweeps them when due.

    Parameters
    ----------
    config_store:
        Events, channels, escalation and routing rules.
    applications:
        Application status and customer contact details.
    staff:
        Staff contact details for internal-staff chains.
    logs:
        Message log and watch store.
    renderer:
        Renders the fallback channel's template.
    dispatcher:
        Sends the escalated message.
    clock:
        Returns "now" when ``sweep()`` is called without an explicit time.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        applications: ApplicationStore,
        staff: StaffStore,
        logs: MessageLogStore,
        renderer: TemplateRenderer,
        dispatcher: MessageDispatcher,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config_store
        self._applications = applications
        self._staff = staff
        self._logs = logs
        self._renderer = renderer
        self._dispatcher = dispatcher
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # Escalation graph
    # ------------------------------------------------------------------

    def edges_for(self, event_id: str) -> list[EscalationEdge]:
        """Return every usable escalation edge for *event_id*."""
        edges = [
            EscalationEdge(
                event_id=r.event_id,
                from_channel_id=r.from_channel_id,
                to_channel_id=r.to_channel_id,
                wait_days=r.wait_days,
                max_attempts=r.max_attempts,
                rule_id=r.id,
            )
            for r in self._config.list_escalation_rules(event_id)
            if r.is_active
        ]
        covered = {e.from_channel_id for e in edges}
        for rule in self._config.list_routing_rules(event_id):
            if (
                rule.is_active
                and rule.escalation_channel_id
                and rule.wait_days_before_escalation > 0
                and rule.channel_id not in covered
            ):
                edges.append(
                    EscalationEdge(
                        event_id=event_id,
                        from_channel_id=rule.channel_id,
                        to_channel_id=rule.escalation_channel_id,
                        wait_days=rule.wait_days_before_escalation,
                        max_attempts=1,
                        routing_rule_id=rule.id,
                    )
                )
                covered.add(rule.channel_id)
        return edges

    def edge_for(self, event_id: str, channel_id: str) -> EscalationEdge | None:
        """Return the edge leaving *channel_id* for *event_id*, if any."""
        matches = [e for e in self.edges_for(event_id) if e.from_channel_id == channel_id]
        if len(matches) > 1:
            logger.warning(
                "Event %s has %d escalation edges from %s; using rule %s",
                event_id,
                len(matches),
                channel_id,
                matches[0].rule_id,
            )
        return matches[0] if matches else None

    # ------------------------------------------------------------------
    # Registration & cancellation
    # ------------------------------------------------------------------

    def register(self, log: MessageLog) -> EscalationWatch | None:
        """Persist a watch for *log* if its event and channel can escalate.

        Returns None when the event does not require a response, has no
        edge from the log's channel, or the log already has a response.
        """
        event = self._config.get_event(log.event_id)
        if event is None or not event.requires_response:
            return None
        if log.status in RESPONSE_STATUSES:
            return None
        edge = self.edge_for(log.event_id, log.channel_id)
        if edge is None:
            return None

        watch = EscalationWatch(
            log_id=log.id,
            event_id=log.event_id,
            application_id=log.application_id,
            channel_id=log.channel_id,
            due_at=log.sent_at + timedelta(days=edge.wait_days),
        )
        self._logs.save_watch(watch)
        logger.debug(
            "Watching %s: escalate %s -> %s at %s",
            log.id,
            edge.from_channel_id,
            edge.to_channel_id,
            watch.due_at.isoformat(),
        )
        return watch

    def cancel_for_log(self, log_id: str, reason: str) -> bool:
        """Cancel the pending watch for one log.  Returns True if cancelled."""
        cancelled = self._logs.transition_watch(
            log_id, WatchState.PENDING, WatchState.CANCELLED, reason
        )
        if cancelled:
            logger.info("Escalation for %s cancelled: %s", log_id, reason)
        return cancelled

    def cancel_for_application(self, application_id: str, reason: str) -> int:
        """Cancel every pending watch of an application; return the count."""
        count = 0
        for watch in self._logs.list_watches(application_id, WatchState.PENDING):
            if self.cancel_for_log(watch.log_id, reason):
                count += 1
        return count

    def pending(self, application_id: str | None = None) -> list[EscalationWatch]:
        return self._logs.list_watches(application_id, WatchState.PENDING)

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    def sweep(self, now: datetime | None = None) -> list[MessageLog]:
        """Process every pending watch due at *now*; return new logs.

        A failure on one watch is logged and leaves that watch pending for
        the next sweep; it never stops the sweep.
        """
        now = now or self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        escalated: list[MessageLog] = []
        due = self._logs.list_due_watches(now)
        if due:
            logger.info("Sweep at %s: %d watch(es) due", now.isoformat(), len(due))

        for watch in due:
            try:
                new_log = self._process(watch, now)
            except _Skip as skip:
                if self._logs.transition_watch(
                    watch.log_id, WatchState.PENDING, skip.state, skip.reason
                ):
                    logger.info(
                        "Escalation for %s %s: %s",
                        watch.log_id,
                        skip.state.value,
                        skip.reason,
                    )
                continue
            except Exception:  # noqa: BLE001
                logger.exception("Escalation of %s failed; will retry", watch.log_id)
                continue
            if new_log is not None:
                escalated.append(new_log)
        return escalated

    def _process(self, watch: EscalationWatch, now: datetime) -> MessageLog | None:
        log = self._logs.get_log(watch.log_id)
        if log is None:
            raise _Skip(WatchState.SKIPPED, "message log missing")

        application = self._applications.get_application(log.application_id)
        if application is None:
            raise _Skip(WatchState.CANCELLED, "application missing")
        if application.is_terminal:
            raise _Skip(
                WatchState.CANCELLED, f"application is {application.status.value}"
            )
        if log.status in RESPONSE_STATUSES:
            raise _Skip(WatchState.CANCELLED, f"recipient responded ({log.status.value})")
        if log.status not in ESCALATION_ELIGIBLE_STATUSES:
            raise _Skip(WatchState.SKIPPED, f"status {log.status.value} cannot escalate")

        edge = self.edge_for(log.event_id, log.channel_id)
        if edge is None:
            raise _Skip(WatchState.SKIPPED, f"no escalation rule from {log.channel_id}")

        channel = self._config.get_channel(edge.to_channel_id)
        if channel is None or not channel.is_active:
            raise _Skip(
                WatchState.SKIPPED, f"target channel {edge.to_channel_id} unavailable"
            )

        chain = self._logs.list_chain(log.chain_origin_id)
        if edge.to_channel_id in {m.channel_id for m in chain}:
            raise _Skip(
                WatchState.SKIPPED, f"channel {edge.to_channel_id} already tried in chain"
            )
        escalations = sum(1 for m in chain if m.escalation_attempt > 0)
        if escalations >= edge.max_attempts:
            raise _Skip(
                WatchState.SKIPPED, f"max attempts ({edge.max_attempts}) reached"
            )

        contact = self._contact_for(log, application, channel.type)
        if not contact:
            raise _Skip(
                WatchState.SKIPPED,
                f"recipient {log.recipient_id} has no {channel.type.value} contact",
            )

        attempt = log.escalation_attempt + 1
        try:
            content = self._renderer.render(
                log.event_id,
                channel.id,
                log.recipient_type,
                application,
                extra={"escalation_attempt": attempt},
            )
        except ConfigurationError as exc:
            raise _Skip(WatchState.SKIPPED, str(exc)) from exc

        if not self._logs.transition_watch(
            log.id, WatchState.PENDING, WatchState.ESCALATED, f"escalated to {channel.id}"
        ):
            # Claimed by a concurrent sweep.
            return None

        target = RoutingTarget(
            channel_id=channel.id,
            channel_type=channel.type,
            recipient_type=log.recipient_type,
            recipient_id=log.recipient_id,
            recipient_name=log.recipient_name,
            recipient_contact=contact,
            priority=0,
            routing_rule_id=log.routing_rule_id,
        )
        try:
            new_log = self._dispatcher.dispatch(
                target,
                content,
                event_id=log.event_id,
                application_id=log.application_id,
                escalated_from=log.id,
                escalation_origin=log.chain_origin_id,
                escalation_attempt=attempt,
                sent_at=now,
            )
        except Exception as exc:
            # Release the claim so the next sweep retries this watch.
            self._logs.transition_watch(
                log.id,
                WatchState.ESCALATED,
                WatchState.PENDING,
                f"escalation to {channel.id} failed: {exc}",
            )
            raise
        logger.info(
            "Escalated %s -> %s on %s (attempt %d)", log.id, new_log.id, channel.id, attempt
        )
        self.register(new_log)
        return new_log

    def _contact_for(
        self, log: MessageLog, application: Application, channel_type: ChannelType
    ) -> str | None:
        if log.recipient_type == RecipientType.CUSTOMER:
            return application.contact_for(channel_type)
        member = self._staff.get_staff_member(log.recipient_id)
        if member is None or not member.is_active:
            return None
        return member.contact_for(channel_type)

    # ------------------------------------------------------------------
    # Background loop
    # ------------------------------------------------------------------

    def run_forever(
        self,
        interval_seconds: float,
        stop_event: threading.Event | None = None,
        *,
        max_sweeps: int | None = None,
    ) -> int:
        """Sweep every *interval_seconds* until *stop_event* is set.

        Returns the total number of escalated messages.
        """
        stop_event = stop_event or threading.Event()
        total = 0
        sweeps = 0
        while not stop_event.is_set():
            total += len(self.sweep())
            sweeps += 1
            if max_sweeps is not None and sweeps >= max_sweeps:
                break
            stop_event.wait(interval_seconds)
        return total
