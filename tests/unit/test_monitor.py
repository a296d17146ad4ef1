"""Tests for the message history projection and its Rich renderer."""

from __future__ import annotations

import pytest
from rich.console import Console

from herald.core.errors import MessageNotFoundError
from herald.models.escalation import WatchState
from herald.models.messages import MessageStatus
from herald.monitor.projection import MessageHistoryProjection, summarize
from herald.monitor.renderer import HistoryRenderer


@pytest.fixture
def escalated(coordinator, clock):
    """docs_pending for app_001, swept at day 3."""
    logs = {m.channel_id: m for m in coordinator.trigger("evt_docs_pending", "app_001")}
    coordinator.sweep(clock.at_day(3))
    return logs


@pytest.fixture
def projection(log_store) -> MessageHistoryProjection:
    return MessageHistoryProjection(log_store)


class TestSummarize:
    def test_empty(self):
        summary = summarize([], [])
        assert summary.total == 0
        assert summary.response_rate == 0.0

    def test_counts(self, make_log):
        logs = [
            make_log(status=MessageStatus.OPENED),
            make_log(status=MessageStatus.BOUNCED),
            make_log(status=MessageStatus.SENT, channel_id="ch_sms", escalation_attempt=1),
            make_log(status=MessageStatus.REPLIED),
        ]
        summary = summarize(logs, [])
        assert summary.total == 4
        assert summary.responded == 2
        assert summary.failed == 1
        assert summary.escalated == 1
        assert summary.by_channel == {"ch_email": 3, "ch_sms": 1}
        assert summary.response_rate == 0.5


class TestProjection:
    def test_history_groups_chains(self, projection, escalated):
        history = projection.history("app_001")
        assert len(history.logs) == 4
        origins = {c.origin_id: c for c in history.chains}
        email_chain = origins[escalated["ch_email"].id]
        assert email_chain.channels == ["ch_email", "ch_sms"]
        assert email_chain.watch.state == WatchState.PENDING
        assert not email_chain.answered
        assert history.summary.escalated == 2
        assert history.summary.pending_escalations == 2

    def test_history_of_unknown_application_is_empty(self, projection):
        history = projection.history("app_999")
        assert history.logs == []
        assert history.chains == []

    def test_chain_from_any_hop(self, projection, escalated, coordinator):
        email = escalated["ch_email"]
        [sms] = [m for m in coordinator.logs.list_chain(email.id) if m.escalation_attempt == 1]
        chain = projection.chain(sms.id)
        assert chain.origin_id == email.id
        assert chain.latest == sms

    def test_chain_answered(self, projection, escalated, coordinator):
        email = escalated["ch_email"]
        coordinator.webhooks.receive(email.id, "replied")
        assert projection.chain(email.id).answered

    def test_unknown_message(self, projection):
        with pytest.raises(MessageNotFoundError):
            projection.chain("msg_missing")

    def test_summary_across_applications(self, projection, coordinator, escalated):
        coordinator.trigger("evt_app_submitted", "app_005")
        assert projection.summary().total == 7
        assert projection.summary("app_005").total == 3

    def test_all_logs_oldest_first(self, projection, escalated):
        logs = projection.all_logs()
        assert [m.sent_at for m in logs] == sorted(m.sent_at for m in logs)

    def test_projection_reads_fresh_state(self, projection, escalated, coordinator):
        email = escalated["ch_email"]
        before = projection.history("app_001")
        coordinator.webhooks.receive(email.id, "delivered")
        after = projection.history("app_001")
        assert before.logs[0].status == MessageStatus.SENT
        assert any(m.status == MessageStatus.DELIVERED for m in after.logs)


class TestRenderer:
    def _render(self, renderable) -> str:
        console = Console(record=True, width=200)
        console.print(renderable)
        return console.export_text()

    def test_history_panel(self, projection, escalated):
        text = self._render(HistoryRenderer().render_history(projection.history("app_001")))
        assert "Message history: app_001" in text
        assert escalated["ch_email"].id in text
        assert "SENT" in text
        assert "Messages: 4" in text
        assert "Pending escalations: 2" in text

    def test_chain_panel(self, projection, escalated):
        text = self._render(HistoryRenderer().render_chain(projection.chain(escalated["ch_email"].id)))
        assert f"Chain {escalated['ch_email'].id}" in text
        assert "ch_sms" in text
        assert "Escalation: pending" in text

    def test_chain_panel_without_watch(self, projection, coordinator):
        [log] = [m for m in coordinator.trigger("evt_approved", "app_004") if m.channel_id == "ch_email"]
        text = self._render(HistoryRenderer().render_chain(projection.chain(log.id)))
        assert "No escalation scheduled" in text

    def test_print_logs_to_console(self, projection, escalated):
        console = Console(record=True, width=200)
        HistoryRenderer(console).print_logs(projection.all_logs(), title="All messages")
        text = console.export_text()
        assert "All messages" in text
        assert "John Smith" in text
