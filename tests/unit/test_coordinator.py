"""Tests for EventTriggerCoordinator — trigger entry point and reports."""

from __future__ import annotations

import pytest

from herald.core.coordinator import EventTriggerCoordinator
from herald.core.errors import ConfigurationError
from herald.models.channels import ChannelType
from herald.models.messages import MessageStatus
from herald.senders import SenderRegistry, default_registry


class _ExplodingTeamsSender:
    channel_type = ChannelType.TEAMS

    def send(self, channel_type, destination, content):
        raise RuntimeError("webhook timed out")


class TestTriggerValidation:
    def test_unknown_event(self, coordinator):
        with pytest.raises(ConfigurationError, match="Unknown event"):
            coordinator.trigger("evt_missing", "app_001")

    def test_inactive_event(self, coordinator, catalog):
        event = catalog.get_event("evt_docs_pending")
        catalog.save_event(event.model_copy(update={"is_active": False}))
        with pytest.raises(ConfigurationError, match="inactive"):
            coordinator.trigger("evt_docs_pending", "app_001")

    def test_unknown_application(self, coordinator):
        with pytest.raises(ConfigurationError, match="Unknown application"):
            coordinator.trigger("evt_docs_pending", "app_999")

    def test_nothing_routed_is_not_an_error(self, coordinator):
        report = coordinator.trigger_with_report("evt_completed", "app_006")
        assert report.ok
        assert report.logs == []


class TestTriggerReport:
    def test_report_lists_logs_in_priority_order(self, coordinator, clock):
        report = coordinator.trigger_with_report("evt_docs_pending", "app_001")
        assert report.ok
        assert [m.channel_id for m in report.logs] == ["ch_email", "ch_sms"]
        assert report.watched == [m.id for m in report.logs]
        assert all(m.sent_at == clock() for m in report.logs)

    def test_missing_contact_skips_target(self, coordinator, catalog):
        app = catalog.get_application("app_001")
        catalog.save_application(app.model_copy(update={"applicant_email": ""}))
        report = coordinator.trigger_with_report("evt_docs_pending", "app_001")
        assert [m.channel_id for m in report.logs] == ["ch_sms"]

    def test_sender_crash_recorded_on_log(self, catalog, log_store, settings, clock):
        registry = default_registry()
        registry.register(_ExplodingTeamsSender())
        coordinator = EventTriggerCoordinator(
            catalog, catalog, catalog, log_store, senders=registry, settings=settings, clock=clock
        )
        report = coordinator.trigger_with_report("evt_app_submitted", "app_005")
        statuses = {m.channel_id: m.status for m in report.logs}
        assert statuses["ch_email"] == MessageStatus.SENT
        assert statuses["ch_teams"] == MessageStatus.FAILED
        assert len(report.logs) == 3

    def test_trigger_returns_logs(self, coordinator):
        assert len(coordinator.trigger("evt_app_submitted", "app_005")) == 3

    def test_default_senders(self, catalog, log_store):
        coordinator = EventTriggerCoordinator(catalog, catalog, catalog, log_store)
        assert isinstance(coordinator.senders, SenderRegistry)
        assert set(coordinator.senders.channel_types) == set(ChannelType)
