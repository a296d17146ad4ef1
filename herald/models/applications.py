"""Application model — owned by the onboarding workflow, read by the engine."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from herald.models.channels import ChannelType


class ApplicationStatus(str, Enum):
    SUBMITTED = "submitted"
    DOCUMENTS_PENDING = "documents_pending"
    DOCUMENTS_RECEIVED = "documents_received"
    UNDER_REVIEW = "under_review"
    ADDITIONAL_INFO_REQUIRED = "additional_info_required"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


# Once an application reaches one of these, no escalation may fire for it.
TERMINAL_APPLICATION_STATUSES: frozenset[ApplicationStatus] = frozenset({
    ApplicationStatus.APPROVED,
    ApplicationStatus.REJECTED,
    ApplicationStatus.COMPLETED,
})


class Application(BaseModel):
    """An application moving through onboarding."""

    model_config = ConfigDict(frozen=True)

    id: str
    applicant_name: str
    applicant_email: str = ""
    applicant_phone: str = ""
    type: str = ""
    status: ApplicationStatus = ApplicationStatus.SUBMITTED
    submitted_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    last_updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    assigned_staff_id: str | None = None
    metadata: dict[str, Any] = {}

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_APPLICATION_STATUSES

    def contact_for(self, channel_type: ChannelType) -> str | None:
        """Return the applicant's address for *channel_type*.

        Customers have no internal chat identity, so ``teams`` yields None.
        Empty addresses are treated as missing.
        """
        if channel_type == ChannelType.EMAIL:
            return self.applicant_email or None
        if channel_type in (ChannelType.SMS, ChannelType.WHATSAPP):
            return self.applicant_phone or None
        return None
