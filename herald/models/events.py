"""Onboarding lifecycle events that can trigger messages."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class EventCategory(str, Enum):
    APPLICATION = "application"
    DOCUMENT = "document"
    VERIFICATION = "verification"
    APPROVAL = "approval"
    COMPLETION = "completion"
    REMINDER = "reminder"


class EventSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class OnboardingEvent(BaseModel):
    """A discrete onboarding occurrence (e.g. documents pending).

    ``code`` is the business key: unique across events and immutable once
    created.  ``requires_response`` gates whether messages triggered by this
    event are watched for escalation.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    code: str
    name: str = ""
    description: str = ""
    category: EventCategory = EventCategory.APPLICATION
    severity: EventSeverity = EventSeverity.MEDIUM
    requires_response: bool = False
    is_active: bool = True
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
