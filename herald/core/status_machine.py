"""Forward-only delivery-status state machine for message logs.

Enforces:
- Valid transitions only (``VALID_TRANSITIONS`` table)
- Terminal logs (replied, failed, bounced) are immutable
- Out-of-order, duplicate and post-terminal callbacks are ignored and
  recorded as anomalies, never raised
- One atomic, order-preserving update per log: a fixed pool of striped
  locks serialises writers of the same log in this process and the
  store's compare-and-set catches writers elsewhere
"""

from __future__ import annotations

import collections
import logging
import threading
from datetime import datetime, timezone

from herald.core.errors import AnomalyWarning, ConcurrencyConflictError, MessageNotFoundError
from herald.models.messages import (
    STATUS_TIMESTAMP_FIELDS,
    VALID_TRANSITIONS,
    MessageLog,
    MessageStatus,
)
from herald.store.base import MessageLogStore

logger = logging.getLogger(__name__)


class InvalidTransitionError(RuntimeError):
    """Raised by ``require_transition`` when a transition is not allowed."""


class StatusMachine:
    """Applies status transitions to message logs.

    Parameters
    ----------
    logs:
        The message log store to read and update.
    max_conflict_retries:
        How many times to re-read and retry after losing a compare-and-set
        race before giving up on a callback.
    anomaly_history:
        How many recent anomalies to keep in ``anomalies``.
    lock_stripes:
        Size of the fixed lock pool; each log id hashes to one lock.
    """

    def __init__(
        self,
        logs: MessageLogStore,
        *,
        max_conflict_retries: int = 5,
        anomaly_history: int = 1000,
        lock_stripes: int = 64,
    ) -> None:
        self._logs = logs
        self._max_retries = max_conflict_retries
        self._locks: tuple[threading.Lock, ...] = tuple(
            threading.Lock() for _ in range(max(1, lock_stripes))
        )
        self._anomalies: collections.deque[AnomalyWarning] = collections.deque(
            maxlen=anomaly_history
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    def can_transition(current: MessageStatus, target: MessageStatus) -> bool:
        return target in VALID_TRANSITIONS.get(current, set())

    @staticmethod
    def require_transition(current: MessageStatus, target: MessageStatus) -> None:
        if target not in VALID_TRANSITIONS.get(current, set()):
            allowed = sorted(s.value for s in VALID_TRANSITIONS.get(current, set()))
            raise InvalidTransitionError(
                f"Cannot transition from {current.value} to {target.value}. "
                f"Allowed: {allowed}"
            )

    @property
    def anomalies(self) -> list[AnomalyWarning]:
        """Recently ignored callbacks, oldest first."""
        return list(self._anomalies)

    # ------------------------------------------------------------------
    # Transition logic
    # ------------------------------------------------------------------

    def _lock_for(self, log_id: str) -> threading.Lock:
        return self._locks[hash(log_id) % len(self._locks)]

    def transition(
        self,
        log_id: str,
        target: MessageStatus,
        *,
        occurred_at: datetime | None = None,
        failure_reason: str | None = None,
        provider_reference: str | None = None,
    ) -> MessageLog:
        """Move a log to *target* if the state machine allows it.

        Returns the stored log after the call: the updated row, or the
        unchanged row when the callback was ignored as an anomaly.

        Raises
        ------
        MessageNotFoundError
            If no log with *log_id* exists.
        """
        target = MessageStatus(target)
        occurred_at = occurred_at or datetime.now(timezone.utc)

        with self._lock_for(log_id):
            for _ in range(self._max_retries + 1):
                current = self._logs.get_log(log_id)
                if current is None:
                    raise MessageNotFoundError(log_id)

                if not self.can_transition(current.status, target):
                    self._record_anomaly(current, target)
                    return current

                update: dict[str, object] = {"status": target}
                field = STATUS_TIMESTAMP_FIELDS.get(target)
                if field and field != "sent_at":
                    update[field] = occurred_at
                if failure_reason is not None:
                    update["failure_reason"] = failure_reason
                if provider_reference is not None:
                    update["provider_reference"] = provider_reference

                try:
                    updated = self._logs.update_log(
                        current.model_copy(update=update), expected_status=current.status
                    )
                except ConcurrencyConflictError:
                    logger.debug("Status race on %s; re-reading", log_id)
                    continue

                logger.debug(
                    "Message %s: %s -> %s", log_id, current.status.value, target.value
                )
                return updated

        # Every retry lost the race to another writer; that writer's forward
        # transition stands.
        latest = self._logs.get_log(log_id)
        if latest is None:
            raise MessageNotFoundError(log_id)
        logger.warning(
            "Gave up applying %s to %s after %d conflicts; status is %s",
            target.value,
            log_id,
            self._max_retries + 1,
            latest.status.value,
        )
        return latest

    def _record_anomaly(self, current: MessageLog, reported: MessageStatus) -> None:
        anomaly = AnomalyWarning(current.id, current.status.value, reported.value)
        self._anomalies.append(anomaly)
        logger.warning("%s", anomaly)
