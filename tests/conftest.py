"""Shared test fixtures for Herald."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from herald.catalog import load_demo_catalog
from herald.config import HeraldSettings
from herald.core.coordinator import EventTriggerCoordinator
from herald.models.applications import Application, ApplicationStatus
from herald.models.channels import Channel, ChannelType
from herald.models.escalation import EscalationRule
from herald.models.events import OnboardingEvent
from herald.models.messages import MessageLog
from herald.models.routing import RecipientType, RoutingRule
from herald.models.staff import StaffMember
from herald.models.templates import MessageTemplate
from herald.senders import SenderRegistry, default_registry
from herald.store.memory import InMemoryCatalog, InMemoryMessageLogStore
from herald.store.sqlite import SqliteMessageLogStore

T0 = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that tests move forward by hand."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: float = 0, **kwargs: float) -> datetime:
        self.now += timedelta(days=days, **kwargs)
        return self.now

    def at_day(self, days: float) -> datetime:
        return T0 + timedelta(days=days)


@pytest.fixture
def clock() -> FakeClock:
    """Provide a simulated clock starting at 2024-01-15 09:00 UTC."""
    return FakeClock()


@pytest.fixture
def settings() -> HeraldSettings:
    """Provide settings that ignore any local .env file."""
    return HeraldSettings(_env_file=None)


@pytest.fixture
def catalog() -> InMemoryCatalog:
    """Provide a fresh copy of the demo catalog."""
    return load_demo_catalog()


@pytest.fixture
def empty_catalog() -> InMemoryCatalog:
    """Provide an empty catalog."""
    return InMemoryCatalog()


@pytest.fixture
def log_store() -> InMemoryMessageLogStore:
    """Provide an isolated in-memory message log store."""
    return InMemoryMessageLogStore()


@pytest.fixture
def sqlite_store(tmp_path: Path) -> SqliteMessageLogStore:
    """Provide a message log store backed by a temp SQLite database."""
    return SqliteMessageLogStore(tmp_path / "messages.db")


@pytest.fixture
def senders() -> SenderRegistry:
    """Provide the bundled payload-building senders."""
    return default_registry()


@pytest.fixture
def coordinator(
    catalog: InMemoryCatalog,
    log_store: InMemoryMessageLogStore,
    senders: SenderRegistry,
    settings: HeraldSettings,
    clock: FakeClock,
) -> EventTriggerCoordinator:
    """Provide a coordinator over the demo catalog with simulated time."""
    return EventTriggerCoordinator(
        catalog,
        catalog,
        catalog,
        log_store,
        senders=senders,
        settings=settings,
        clock=clock,
    )


# ---------------------------------------------------------------------------
# Model factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_application() -> Callable[..., Application]:
    """Factory fixture: build an Application with sensible defaults."""

    def _factory(application_id: str = "app_test", **overrides: Any) -> Application:
        defaults: dict[str, Any] = {
            "id": application_id,
            "applicant_name": "Test Applicant",
            "applicant_email": "applicant@example.com",
            "applicant_phone": "+15550001111",
            "type": "Standard Account",
            "status": ApplicationStatus.DOCUMENTS_PENDING,
            "submitted_at": T0 - timedelta(days=5),
        }
        defaults.update(overrides)
        return Application(**defaults)

    return _factory


@pytest.fixture
def make_channel() -> Callable[..., Channel]:
    """Factory fixture: build a Channel whose id is ``ch_<type>``."""

    def _factory(channel_type: ChannelType = ChannelType.EMAIL, **overrides: Any) -> Channel:
        channel_type = ChannelType(channel_type)
        defaults: dict[str, Any] = {
            "id": f"ch_{channel_type.value}",
            "type": channel_type,
            "name": channel_type.value.title(),
        }
        defaults.update(overrides)
        return Channel(**defaults)

    return _factory


@pytest.fixture
def make_event() -> Callable[..., OnboardingEvent]:
    """Factory fixture: build an OnboardingEvent."""

    def _factory(event_id: str = "evt_test", **overrides: Any) -> OnboardingEvent:
        defaults: dict[str, Any] = {
            "id": event_id,
            "code": event_id.upper(),
            "name": event_id,
            "requires_response": True,
        }
        defaults.update(overrides)
        return OnboardingEvent(**defaults)

    return _factory


@pytest.fixture
def make_routing_rule() -> Callable[..., RoutingRule]:
    """Factory fixture: build a customer RoutingRule."""

    def _factory(
        rule_id: str = "rr_test",
        event_id: str = "evt_test",
        channel_id: str = "ch_email",
        **overrides: Any,
    ) -> RoutingRule:
        defaults: dict[str, Any] = {
            "id": rule_id,
            "event_id": event_id,
            "channel_id": channel_id,
            "recipient_type": RecipientType.CUSTOMER,
        }
        defaults.update(overrides)
        return RoutingRule(**defaults)

    return _factory


@pytest.fixture
def make_escalation_rule() -> Callable[..., EscalationRule]:
    """Factory fixture: build an EscalationRule."""

    def _factory(
        rule_id: str = "esc_test",
        event_id: str = "evt_test",
        from_channel_id: str = "ch_email",
        to_channel_id: str = "ch_sms",
        **overrides: Any,
    ) -> EscalationRule:
        defaults: dict[str, Any] = {
            "id": rule_id,
            "event_id": event_id,
            "from_channel_id": from_channel_id,
            "to_channel_id": to_channel_id,
            "wait_days": 3,
            "max_attempts": 2,
        }
        defaults.update(overrides)
        return EscalationRule(**defaults)

    return _factory


@pytest.fixture
def make_template() -> Callable[..., MessageTemplate]:
    """Factory fixture: build a MessageTemplate."""

    def _factory(
        template_id: str = "tpl_test",
        event_id: str = "evt_test",
        channel_id: str = "ch_email",
        recipient_type: RecipientType = RecipientType.CUSTOMER,
        **overrides: Any,
    ) -> MessageTemplate:
        defaults: dict[str, Any] = {
            "id": template_id,
            "event_id": event_id,
            "channel_id": channel_id,
            "recipient_type": recipient_type,
            "subject": "Hello {{applicant_name}}",
            "body": "Application {{application_id}} needs attention.",
        }
        defaults.update(overrides)
        return MessageTemplate(**defaults)

    return _factory


@pytest.fixture
def make_staff() -> Callable[..., StaffMember]:
    """Factory fixture: build a StaffMember."""

    def _factory(staff_id: str = "staff_test", **overrides: Any) -> StaffMember:
        defaults: dict[str, Any] = {
            "id": staff_id,
            "name": staff_id.replace("_", " ").title(),
            "email": f"{staff_id}@company.example",
            "phone": "+15550002222",
            "role_ids": ["role_reviewer"],
            "contact_preferences": [ChannelType.EMAIL, ChannelType.TEAMS],
        }
        defaults.update(overrides)
        return StaffMember(**defaults)

    return _factory


@pytest.fixture
def make_log() -> Callable[..., MessageLog]:
    """Factory fixture: build a MessageLog for a customer email."""

    def _factory(**overrides: Any) -> MessageLog:
        defaults: dict[str, Any] = {
            "application_id": "app_001",
            "event_id": "evt_docs_pending",
            "channel_id": "ch_email",
            "recipient_type": RecipientType.CUSTOMER,
            "recipient_id": "app_001",
            "recipient_name": "John Smith",
            "recipient_contact": "john.smith@email.com",
            "template_id": "tpl_3",
            "sent_at": T0,
        }
        defaults.update(overrides)
        return MessageLog(**defaults)

    return _factory
