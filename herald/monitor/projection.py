"""MessageHistoryProjection — pure read-only view over the message log.

Every method re-reads the store; nothing is cached between calls.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from herald.core.errors import MessageNotFoundError
from herald.models.escalation import EscalationWatch, WatchState
from herald.models.messages import RESPONSE_STATUSES, MessageLog, MessageStatus
from herald.store.base import MessageLogStore


class MessageChain(BaseModel):
    """An original message and every escalation that followed it.

    ``hops`` is ordered by ``escalation_attempt``; ``hops[0]`` is the
    original message.
    """

    model_config = ConfigDict(frozen=True)

    origin_id: str
    hops: list[MessageLog] = []
    watch: EscalationWatch | None = None  # watch of the latest hop

    @property
    def latest(self) -> MessageLog | None:
        return self.hops[-1] if self.hops else None

    @property
    def channels(self) -> list[str]:
        return [m.channel_id for m in self.hops]

    @property
    def answered(self) -> bool:
        return any(m.status in RESPONSE_STATUSES for m in self.hops)


class DeliverySummary(BaseModel):
    """Counts needed to validate delivery state."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    by_status: dict[str, int] = {}
    by_channel: dict[str, int] = {}
    escalated: int = 0
    pending_escalations: int = 0

    @property
    def responded(self) -> int:
        return sum(self.by_status.get(s.value, 0) for s in RESPONSE_STATUSES)

    @property
    def failed(self) -> int:
        return self.by_status.get(MessageStatus.FAILED.value, 0) + self.by_status.get(
            MessageStatus.BOUNCED.value, 0
        )

    @property
    def response_rate(self) -> float:
        return self.responded / self.total if self.total else 0.0


class ApplicationHistory(BaseModel):
    """Point-in-time message history of one application."""

    model_config = ConfigDict(frozen=True)

    application_id: str
    logs: list[MessageLog] = []
    chains: list[MessageChain] = []
    summary: DeliverySummary = Field(default_factory=DeliverySummary)
    generated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


def summarize(logs: list[MessageLog], watches: list[EscalationWatch]) -> DeliverySummary:
    """Pure function: reduce logs and watches to a ``DeliverySummary``."""
    return DeliverySummary(
        total=len(logs),
        by_status=dict(Counter(m.status.value for m in logs)),
        by_channel=dict(Counter(m.channel_id for m in logs)),
        escalated=sum(1 for m in logs if m.escalation_attempt > 0),
        pending_escalations=sum(1 for w in watches if w.state == WatchState.PENDING),
    )


class MessageHistoryProjection:
    """Read-only projection over a ``MessageLogStore``.

    Parameters
    ----------
    logs:
        The message log store to project from.
    """

    def __init__(self, logs: MessageLogStore) -> None:
        self._logs = logs

    def history(self, application_id: str) -> ApplicationHistory:
        """Every message sent for *application_id*, oldest first."""
        logs = sorted(
            self._logs.list_logs(application_id),
            key=lambda m: (m.sent_at, m.escalation_attempt),
        )
        origins: list[str] = []
        for log in logs:
            if log.chain_origin_id not in origins:
                origins.append(log.chain_origin_id)
        watches = self._logs.list_watches(application_id)
        return ApplicationHistory(
            application_id=application_id,
            logs=logs,
            chains=[self._build_chain(origin) for origin in origins],
            summary=summarize(logs, watches),
        )

    def all_logs(self) -> list[MessageLog]:
        """Every message in the store, oldest first."""
        return sorted(self._logs.list_logs(), key=lambda m: (m.sent_at, m.escalation_attempt))

    def chain(self, message_id: str) -> MessageChain:
        """The chain *message_id* belongs to, from the original message on.

        Raises
        ------
        MessageNotFoundError
            If *message_id* is unknown.
        """
        log = self._logs.get_log(message_id)
        if log is None:
            raise MessageNotFoundError(message_id)
        return self._build_chain(log.chain_origin_id)

    def summary(self, application_id: str | None = None) -> DeliverySummary:
        """Delivery counts for one application, or for every message."""
        return summarize(
            self._logs.list_logs(application_id),
            self._logs.list_watches(application_id),
        )

    def _build_chain(self, origin_id: str) -> MessageChain:
        hops = self._logs.list_chain(origin_id)
        watch = self._logs.get_watch(hops[-1].id) if hops else None
        return MessageChain(origin_id=origin_id, hops=hops, watch=watch)
