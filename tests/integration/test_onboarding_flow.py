"""End-to-end onboarding flows — trigger, callbacks and escalation sweeps.

These tests exercise the EventTriggerCoordinator, RoutingResolver,
TemplateRenderer, MessageDispatcher, StatusMachine, EscalationScheduler
and MessageHistoryProjection working together over the demo catalog, with
a simulated clock standing in for elapsed days.
"""

from __future__ import annotations

import pytest

from herald.admin import ConfigurationService
from herald.core.coordinator import EventTriggerCoordinator
from herald.models.escalation import WatchState
from herald.models.messages import MessageStatus
from herald.models.routing import RecipientType, RoutingRule
from herald.monitor.projection import MessageHistoryProjection


class TestUnansweredDocumentRequest:
    """An unanswered documents request escalates from email to sms on day 3."""

    def test_email_escalates_to_sms(self, coordinator, clock):
        logs = coordinator.trigger("evt_docs_pending", "app_001")
        [email] = [m for m in logs if m.channel_id == "ch_email"]
        assert email.status == MessageStatus.SENT
        assert "- Proof of address" in email.body
        assert "January 22, 2024" in email.body

        clock.advance(3)
        escalated = coordinator.sweep()
        [sms] = [m for m in escalated if m.escalated_from == email.id]
        assert sms.channel_id == "ch_sms"
        assert sms.escalation_attempt == 1
        assert sms.recipient_contact == "+1987654321"
        assert sms.body.startswith("Hi John Smith, documents needed for application app_001")
        assert "January 25, 2024" in sms.body

    def test_history_shows_both_hops(self, coordinator, clock):
        logs = coordinator.trigger("evt_docs_pending", "app_001")
        [email] = [m for m in logs if m.channel_id == "ch_email"]
        clock.advance(3)
        coordinator.sweep()

        history = MessageHistoryProjection(coordinator.logs).history("app_001")
        [chain] = [c for c in history.chains if c.origin_id == email.id]
        assert chain.channels == ["ch_email", "ch_sms"]
        assert history.summary.total == 4


class TestMissingTemplate:
    """A target without a template fails alone; the rest still go out."""

    def test_whatsapp_fails_email_sends(self, coordinator, catalog):
        ConfigurationService(catalog).create_routing_rule(
            RoutingRule(
                id="rr_9",
                event_id="evt_app_submitted",
                channel_id="ch_whatsapp",
                recipient_type=RecipientType.CUSTOMER,
                priority=2,
            )
        )
        report = coordinator.trigger_with_report("evt_app_submitted", "app_005")

        assert not report.ok
        [failure] = report.failures
        assert failure.target.channel_id == "ch_whatsapp"
        assert failure.error_type == "TemplateNotFoundError"

        channels = sorted(m.channel_id for m in report.logs)
        assert channels == ["ch_email", "ch_teams", "ch_teams"]
        assert all(m.status == MessageStatus.SENT for m in report.logs)
        assert {m.recipient_id for m in report.logs if m.channel_id == "ch_teams"} == {
            "staff_1",
            "staff_4",
        }


class TestOpenedMessage:
    """An email opened before the wait elapses is never escalated."""

    def test_open_on_day_one_prevents_escalation(self, coordinator, clock):
        logs = coordinator.trigger("evt_reminder_3day", "app_002")
        [email] = logs
        clock.advance(1)
        coordinator.webhooks.receive(email.id, "opened", occurred_at=clock())

        clock.advance(3)
        assert coordinator.sweep() == []
        watch = coordinator.logs.get_watch(email.id)
        assert watch.state == WatchState.CANCELLED
        assert len(coordinator.logs.list_logs("app_002")) == 1

    def test_unopened_reminder_escalates_to_whatsapp(self, coordinator, clock):
        [email] = coordinator.trigger("evt_reminder_3day", "app_002")
        clock.advance(4)
        [whatsapp] = coordinator.sweep()
        assert whatsapp.channel_id == "ch_whatsapp"
        assert whatsapp.escalated_from == email.id
        assert whatsapp.template_id == "tpl_9"


class TestPersistentChain:
    """A full email -> sms -> whatsapp chain survives on SQLite."""

    @pytest.fixture
    def sqlite_coordinator(self, catalog, sqlite_store, senders, settings, clock):
        return EventTriggerCoordinator(
            catalog,
            catalog,
            catalog,
            sqlite_store,
            senders=senders,
            settings=settings,
            clock=clock,
        )

    def test_three_hop_chain(self, sqlite_coordinator, sqlite_store, clock):
        logs = sqlite_coordinator.trigger("evt_docs_pending", "app_001")
        [email] = [m for m in logs if m.channel_id == "ch_email"]

        for day in (3, 5, 7):
            clock.now = clock.at_day(day)
            sqlite_coordinator.sweep()
            # A repeated sweep at the same instant is a no-op.
            assert sqlite_coordinator.sweep() == []

        chain = sqlite_store.list_chain(email.id)
        assert [m.channel_id for m in chain] == ["ch_email", "ch_sms", "ch_whatsapp"]
        assert [m.escalation_attempt for m in chain] == [0, 1, 2]
        assert chain[2].escalated_from == chain[1].id
        assert sqlite_store.get_watch(chain[2].id).state == WatchState.SKIPPED

    def test_webhook_then_terminal_application(self, sqlite_coordinator, sqlite_store, clock):
        logs = sqlite_coordinator.trigger("evt_docs_pending", "app_001")
        [sms] = [m for m in logs if m.channel_id == "ch_sms"]
        sqlite_coordinator.webhooks.receive(sms.id, "delivered")
        assert sqlite_coordinator.notify_application_status("app_001", "rejected") == 2

        clock.advance(10)
        assert sqlite_coordinator.sweep() == []
        assert sqlite_store.get_log(sms.id).status == MessageStatus.DELIVERED
