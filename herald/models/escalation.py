"""Escalation models — fallback edges and persisted due-time watches."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EscalationRule(BaseModel):
    """A directed edge in an event's escalation graph.

    Several rules for the same event chain together
    (e.g. email -> sms -> whatsapp).
    """

    model_config = ConfigDict(frozen=True)

    id: str
    event_id: str
    from_channel_id: str
    to_channel_id: str
    wait_days: int = 1
    max_attempts: int = 1
    is_active: bool = True

    @field_validator("max_attempts")
    @classmethod
    def _max_attempts_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_attempts must be >= 1")
        return value

    @field_validator("wait_days")
    @classmethod
    def _wait_days_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("wait_days must be >= 0")
        return value


class WatchState(str, Enum):
    PENDING = "pending"
    ESCALATED = "escalated"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"


class EscalationWatch(BaseModel):
    """Persisted record of one message's pending escalation.

    ``due_at`` is ``sent_at + wait_days`` of the matching edge.  Only
    ``PENDING`` watches are considered by a sweep.  A sweep whose dispatch
    fails puts its claimed watch back to ``PENDING``; every other state is
    final.
    """

    model_config = ConfigDict(frozen=True)

    log_id: str
    event_id: str
    application_id: str
    channel_id: str
    due_at: datetime
    state: WatchState = WatchState.PENDING
    reason: str | None = None
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
