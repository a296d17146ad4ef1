"""Tests for MessageDispatcher — log creation and sender hand-off."""

from __future__ import annotations

import pytest

from herald.core.dispatch import MessageDispatcher
from herald.core.errors import DeliveryError
from herald.core.status_machine import StatusMachine
from herald.models.channels import ChannelType
from herald.models.messages import MessageStatus, SendReceipt
from herald.models.routing import RecipientType, RoutingTarget
from herald.models.templates import RenderedContent
from herald.senders import SenderRegistry, default_registry


class _RejectingSender:
    channel_type = ChannelType.EMAIL

    def send(self, channel_type, destination, content) -> SendReceipt:
        raise DeliveryError("mailbox unavailable")


class _CrashingSender:
    channel_type = ChannelType.EMAIL

    def send(self, channel_type, destination, content) -> SendReceipt:
        raise RuntimeError("connection reset")


@pytest.fixture
def target() -> RoutingTarget:
    return RoutingTarget(
        channel_id="ch_email",
        channel_type=ChannelType.EMAIL,
        recipient_type=RecipientType.CUSTOMER,
        recipient_id="app_001",
        recipient_name="John Smith",
        recipient_contact="john.smith@email.com",
        priority=1,
        routing_rule_id="rr_3",
    )


@pytest.fixture
def content() -> RenderedContent:
    return RenderedContent(template_id="tpl_3", subject="Documents needed", body="Please upload.")


def _dispatcher(log_store, senders: SenderRegistry, clock) -> MessageDispatcher:
    return MessageDispatcher(log_store, StatusMachine(log_store), senders, clock=clock)


class TestDispatch:
    def test_successful_send(self, log_store, clock, target, content):
        log = _dispatcher(log_store, default_registry(), clock).dispatch(
            target, content, event_id="evt_docs_pending", application_id="app_001"
        )
        assert log.status == MessageStatus.SENT
        assert log.sent_at == clock()
        assert log.provider_reference
        assert log.subject == "Documents needed"
        assert log.template_id == "tpl_3"
        assert log.routing_rule_id == "rr_3"
        assert log.escalation_attempt == 0
        assert log_store.get_log(log.id) == log

    def test_payload_reaches_sender(self, log_store, clock, target, content):
        registry = default_registry()
        _dispatcher(log_store, registry, clock).dispatch(
            target, content, event_id="evt_docs_pending", application_id="app_001"
        )
        payloads = registry.get(ChannelType.EMAIL).flush()
        assert [p.recipient for p in payloads] == ["john.smith@email.com"]

    def test_rejection_recorded_as_failed(self, log_store, clock, target, content):
        log = _dispatcher(log_store, SenderRegistry([_RejectingSender()]), clock).dispatch(
            target, content, event_id="evt_docs_pending", application_id="app_001"
        )
        assert log.status == MessageStatus.FAILED
        assert log.failure_reason == "mailbox unavailable"
        assert log.failed_at == clock()

    def test_sender_crash_never_leaves_log_queued(self, log_store, clock, target, content):
        log = _dispatcher(log_store, SenderRegistry([_CrashingSender()]), clock).dispatch(
            target, content, event_id="evt_docs_pending", application_id="app_001"
        )
        assert log.status == MessageStatus.FAILED
        assert log.failure_reason.startswith("sender error")

    def test_missing_sender_is_a_delivery_failure(self, log_store, clock, target, content):
        log = _dispatcher(log_store, SenderRegistry(), clock).dispatch(
            target, content, event_id="evt_docs_pending", application_id="app_001"
        )
        assert log.status == MessageStatus.FAILED
        assert "No sender registered" in log.failure_reason

    def test_repeat_dispatch_is_not_deduplicated(self, log_store, clock, target, content):
        dispatcher = _dispatcher(log_store, default_registry(), clock)
        first = dispatcher.dispatch(
            target, content, event_id="evt_docs_pending", application_id="app_001"
        )
        second = dispatcher.dispatch(
            target, content, event_id="evt_docs_pending", application_id="app_001"
        )
        assert first.id != second.id
        assert len(log_store.list_logs("app_001")) == 2

    def test_escalation_linkage_recorded(self, log_store, clock, target, content):
        log = _dispatcher(log_store, default_registry(), clock).dispatch(
            target,
            content,
            event_id="evt_docs_pending",
            application_id="app_001",
            escalated_from="msg_prev",
            escalation_origin="msg_origin",
            escalation_attempt=2,
        )
        assert log.escalated_from == "msg_prev"
        assert log.chain_origin_id == "msg_origin"
        assert log.escalation_attempt == 2
