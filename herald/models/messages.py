"""Message log models and the delivery-status state machine table.

The message log is the audit trail of the engine.  Rows are appended by
dispatch and then only ever moved forward through ``VALID_TRANSITIONS``;
they are never deleted.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from herald.models.routing import RecipientType


class MessageStatus(str, Enum):
    QUEUED = "queued"
    SENT = "sent"
    DELIVERED = "delivered"
    OPENED = "opened"
    CLICKED = "clicked"
    REPLIED = "replied"
    FAILED = "failed"
    BOUNCED = "bounced"


# Forward-only transitions.  Intermediate states may be skipped
# (a provider can report ``replied`` without ever reporting ``opened``).
# Terminal states (REPLIED, FAILED, BOUNCED) have no outgoing transitions.
VALID_TRANSITIONS: dict[MessageStatus, set[MessageStatus]] = {
    MessageStatus.QUEUED: {MessageStatus.SENT, MessageStatus.FAILED},
    MessageStatus.SENT: {
        MessageStatus.DELIVERED,
        MessageStatus.FAILED,
        MessageStatus.BOUNCED,
        MessageStatus.OPENED,
        MessageStatus.CLICKED,
        MessageStatus.REPLIED,
    },
    MessageStatus.DELIVERED: {
        MessageStatus.OPENED,
        MessageStatus.CLICKED,
        MessageStatus.REPLIED,
    },
    MessageStatus.OPENED: {MessageStatus.CLICKED, MessageStatus.REPLIED},
    MessageStatus.CLICKED: {MessageStatus.REPLIED},
    MessageStatus.REPLIED: set(),
    MessageStatus.FAILED: set(),
    MessageStatus.BOUNCED: set(),
}

TERMINAL_STATUSES: frozenset[MessageStatus] = frozenset(
    status for status, targets in VALID_TRANSITIONS.items() if not targets
)

# Any of these means the recipient engaged; escalation is no longer due.
RESPONSE_STATUSES: frozenset[MessageStatus] = frozenset({
    MessageStatus.OPENED,
    MessageStatus.CLICKED,
    MessageStatus.REPLIED,
})

# Statuses in which a message still counts as unanswered for escalation.
# Failed and bounced sends can never be answered, so they qualify too.
ESCALATION_ELIGIBLE_STATUSES: frozenset[MessageStatus] = frozenset({
    MessageStatus.SENT,
    MessageStatus.DELIVERED,
    MessageStatus.FAILED,
    MessageStatus.BOUNCED,
})

# Which timestamp column each status stamps.
STATUS_TIMESTAMP_FIELDS: dict[MessageStatus, str] = {
    MessageStatus.SENT: "sent_at",
    MessageStatus.DELIVERED: "delivered_at",
    MessageStatus.OPENED: "opened_at",
    MessageStatus.CLICKED: "clicked_at",
    MessageStatus.REPLIED: "replied_at",
    MessageStatus.FAILED: "failed_at",
    MessageStatus.BOUNCED: "failed_at",
}


def _new_message_id() -> str:
    return f"msg_{uuid.uuid4().hex[:16]}"


class MessageLog(BaseModel):
    """One message sent (or attempted) to one recipient on one channel.

    ``escalated_from`` links to the predecessor in an escalation chain and
    ``escalation_origin`` to the chain's original message; both are None on
    an original.  ``escalation_attempt`` is 0 for an original and increments
    by one per hop.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_message_id)
    application_id: str
    event_id: str
    channel_id: str
    recipient_type: RecipientType
    recipient_id: str
    recipient_name: str = ""
    recipient_contact: str = ""
    template_id: str = ""
    routing_rule_id: str | None = None
    subject: str | None = None
    body: str = ""
    status: MessageStatus = MessageStatus.QUEUED
    sent_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    delivered_at: datetime | None = None
    opened_at: datetime | None = None
    clicked_at: datetime | None = None
    replied_at: datetime | None = None
    failed_at: datetime | None = None
    failure_reason: str | None = None
    provider_reference: str | None = None
    escalated_from: str | None = None
    escalation_origin: str | None = None
    escalation_attempt: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def chain_origin_id(self) -> str:
        """The id of the original message of this log's chain."""
        return self.escalation_origin or self.id


class SendReceipt(BaseModel):
    """Acknowledgement that a provider accepted a message for delivery."""

    model_config = ConfigDict(frozen=True)

    channel_type: str
    destination: str
    provider_reference: str = Field(default_factory=lambda: uuid.uuid4().hex)
    accepted_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
