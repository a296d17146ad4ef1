"""Message dispatch — one log row per target per call, then hand-off to a sender.

Dispatch appends the log as ``queued``, hands the content to the channel
sender and moves the log to ``sent`` (or ``failed`` when the sender
rejects it).  It never waits for the provider's delivery confirmation;
that arrives later through the delivery webhook receiver.

Dispatch does not deduplicate: legitimate resends and escalations share
the same ``(event_id, application_id, channel_id)``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from herald.core.errors import DeliveryError
from herald.core.status_machine import StatusMachine
from herald.models.messages import MessageLog, MessageStatus
from herald.models.routing import RoutingTarget
from herald.models.templates import RenderedContent
from herald.senders import SenderRegistry
from herald.store.base import MessageLogStore

logger = logging.getLogger(__name__)


class MessageDispatcher:
    """Creates message logs and sends them through the sender registry.

    Parameters
    ----------
    logs:
        Store that receives the new log rows.
    status_machine:
        Applies the ``queued -> sent/failed`` transition.
    senders:
        Registry of channel senders keyed by channel type.
    clock:
        Returns "now" for ``sent_at``; injectable for simulated time.
    """

    def __init__(
        self,
        logs: MessageLogStore,
        status_machine: StatusMachine,
        senders: SenderRegistry,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._logs = logs
        self._status = status_machine
        self._senders = senders
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def dispatch(
        self,
        target: RoutingTarget,
        content: RenderedContent,
        *,
        event_id: str,
        application_id: str,
        escalated_from: str | None = None,
        escalation_origin: str | None = None,
        escalation_attempt: int = 0,
        sent_at: datetime | None = None,
    ) -> MessageLog:
        """Record and send one message; return its log.

        A ``DeliveryError`` from the sender is recorded on the log as
        ``failed`` and does not propagate.  So does any other sender
        exception: a log is never left ``queued``.
        """
        log = MessageLog(
            application_id=application_id,
            event_id=event_id,
            channel_id=target.channel_id,
            recipient_type=target.recipient_type,
            recipient_id=target.recipient_id,
            recipient_name=target.recipient_name,
            recipient_contact=target.recipient_contact,
            template_id=content.template_id,
            routing_rule_id=target.routing_rule_id,
            subject=content.subject,
            body=content.body,
            status=MessageStatus.QUEUED,
            sent_at=sent_at or self._clock(),
            escalated_from=escalated_from,
            escalation_origin=escalation_origin,
            escalation_attempt=escalation_attempt,
        )
        self._logs.append(log)

        try:
            receipt = self._senders.send(target.channel_type, target.recipient_contact, content)
        except DeliveryError as exc:
            logger.warning(
                "Delivery failed for %s (%s -> %s): %s",
                log.id,
                target.channel_id,
                target.recipient_id,
                exc,
            )
            return self._status.transition(
                log.id,
                MessageStatus.FAILED,
                occurred_at=log.sent_at,
                failure_reason=str(exc),
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "Sender crashed for %s (%s -> %s)", log.id, target.channel_id, target.recipient_id
            )
            return self._status.transition(
                log.id,
                MessageStatus.FAILED,
                occurred_at=log.sent_at,
                failure_reason=f"sender error: {exc}",
            )

        logger.info(
            "Sent %s via %s to %s (attempt %d)",
            log.id,
            target.channel_id,
            target.recipient_id,
            escalation_attempt,
        )
        return self._status.transition(
            log.id,
            MessageStatus.SENT,
            occurred_at=log.sent_at,
            provider_reference=receipt.provider_reference,
        )
