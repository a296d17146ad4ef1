"""Delivery Webhook Receiver — applies provider callbacks to message logs."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from herald.core.status_machine import StatusMachine
from herald.models.messages import RESPONSE_STATUSES, MessageLog, MessageStatus

if TYPE_CHECKING:
    from herald.core.escalation import EscalationScheduler

logger = logging.getLogger(__name__)

# Statuses a provider may report; queued/sent are set by dispatch only.
CALLBACK_STATUSES: frozenset[MessageStatus] = frozenset({
    MessageStatus.DELIVERED,
    MessageStatus.OPENED,
    MessageStatus.CLICKED,
    MessageStatus.REPLIED,
    MessageStatus.FAILED,
    MessageStatus.BOUNCED,
})


class DeliveryWebhookReceiver:
    """Feeds provider delivery callbacks into the status machine.

    A callback that reports a response (opened, clicked, replied) also
    cancels the message's pending escalation.
    """

    def __init__(
        self,
        status_machine: StatusMachine,
        scheduler: EscalationScheduler | None = None,
    ) -> None:
        self._status = status_machine
        self._scheduler = scheduler

    def receive(
        self,
        message_id: str,
        status: MessageStatus | str,
        *,
        occurred_at: datetime | None = None,
        reason: str | None = None,
    ) -> MessageLog:
        """Apply one callback; return the log as stored afterwards.

        Raises
        ------
        ValueError
            If *status* is not a callback status.
        MessageNotFoundError
            If *message_id* is unknown.
        """
        status = MessageStatus(status)
        if status not in CALLBACK_STATUSES:
            raise ValueError(f"{status.value} is not a delivery callback status")

        failure_reason = None
        if status in (MessageStatus.FAILED, MessageStatus.BOUNCED):
            failure_reason = reason or status.value

        log = self._status.transition(
            message_id, status, occurred_at=occurred_at, failure_reason=failure_reason
        )
        if self._scheduler is not None and log.status in RESPONSE_STATUSES:
            self._scheduler.cancel_for_log(log.id, f"recipient responded ({log.status.value})")
        return log
