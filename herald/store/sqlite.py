"""SQLite-backed message log store.

Design:
- Append-mostly: ``append()`` inserts; rows are never deleted.
- Status updates are compare-and-set (``UPDATE ... WHERE status = ?``)
  inside ``BEGIN IMMEDIATE`` transactions, so concurrent writers can
  never interleave a partial update on one row.
- Escalation watches live in their own table keyed by log id; sweeps
  claim them with the same compare-and-set pattern.
- WAL journal mode for concurrent readers.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from herald.core.errors import ConcurrencyConflictError, MessageNotFoundError
from herald.models.escalation import EscalationWatch, WatchState
from herald.models.messages import MessageLog, MessageStatus

# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_LOGS = """
CREATE TABLE IF NOT EXISTS message_logs (
    seq                 INTEGER PRIMARY KEY AUTOINCREMENT,
    id                  TEXT NOT NULL UNIQUE,
    application_id      TEXT NOT NULL,
    event_id            TEXT NOT NULL,
    channel_id          TEXT NOT NULL,
    recipient_type      TEXT NOT NULL,
    recipient_id        TEXT NOT NULL,
    recipient_name      TEXT NOT NULL DEFAULT '',
    recipient_contact   TEXT NOT NULL DEFAULT '',
    template_id         TEXT NOT NULL DEFAULT '',
    routing_rule_id     TEXT,
    subject             TEXT,
    body                TEXT NOT NULL DEFAULT '',
    status              TEXT NOT NULL,
    sent_at             TEXT NOT NULL,
    delivered_at        TEXT,
    opened_at           TEXT,
    clicked_at          TEXT,
    replied_at          TEXT,
    failed_at           TEXT,
    failure_reason      TEXT,
    provider_reference  TEXT,
    escalated_from      TEXT,
    escalation_origin   TEXT,
    escalation_attempt  INTEGER NOT NULL DEFAULT 0
);
"""

_CREATE_IDX_APP = """
CREATE INDEX IF NOT EXISTS idx_logs_application ON message_logs(application_id, seq);
"""

_CREATE_IDX_ORIGIN = """
CREATE INDEX IF NOT EXISTS idx_logs_origin ON message_logs(escalation_origin, escalation_attempt);
"""

_CREATE_WATCHES = """
CREATE TABLE IF NOT EXISTS escalation_watches (
    log_id          TEXT PRIMARY KEY,
    event_id        TEXT NOT NULL,
    application_id  TEXT NOT NULL,
    channel_id      TEXT NOT NULL,
    due_at          TEXT NOT NULL,
    state           TEXT NOT NULL,
    reason          TEXT,
    updated_at      TEXT NOT NULL
);
"""

_CREATE_IDX_DUE = """
CREATE INDEX IF NOT EXISTS idx_watches_due ON escalation_watches(state, due_at);
"""

# Column order shared by INSERT, UPDATE and row conversion.
_LOG_COLUMNS: tuple[str, ...] = (
    "id",
    "application_id",
    "event_id",
    "channel_id",
    "recipient_type",
    "recipient_id",
    "recipient_name",
    "recipient_contact",
    "template_id",
    "routing_rule_id",
    "subject",
    "body",
    "status",
    "sent_at",
    "delivered_at",
    "opened_at",
    "clicked_at",
    "replied_at",
    "failed_at",
    "failure_reason",
    "provider_reference",
    "escalated_from",
    "escalation_origin",
    "escalation_attempt",
)

_WATCH_COLUMNS: tuple[str, ...] = (
    "log_id",
    "event_id",
    "application_id",
    "channel_id",
    "due_at",
    "state",
    "reason",
    "updated_at",
)


def _ts(value: datetime | None) -> str | None:
    """Serialize a datetime as a sortable UTC ISO-8601 string."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


class SqliteMessageLogStore:
    """Message log store persisted to a SQLite database.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self._db_path), check_same_thread=False, isolation_level=None
        )
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=5000")
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        conn = self._connect()
        try:
            conn.execute(_CREATE_LOGS)
            conn.execute(_CREATE_IDX_APP)
            conn.execute(_CREATE_IDX_ORIGIN)
            conn.execute(_CREATE_WATCHES)
            conn.execute(_CREATE_IDX_DUE)
        finally:
            conn.close()

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------

    def append(self, log: MessageLog) -> MessageLog:
        """Insert a new log row.  Raises ``ValueError`` on a duplicate id."""
        placeholders = ", ".join("?" for _ in _LOG_COLUMNS)
        conn = self._connect()
        try:
            conn.execute(
                f"INSERT INTO message_logs ({', '.join(_LOG_COLUMNS)}) "
                f"VALUES ({placeholders})",
                self._log_to_row(log),
            )
        except sqlite3.IntegrityError as exc:
            raise ValueError(f"Message log {log.id} already exists") from exc
        finally:
            conn.close()
        return log

    def get_log(self, log_id: str) -> MessageLog | None:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT * FROM message_logs WHERE id = ?", (log_id,)
            ).fetchone()
        finally:
            conn.close()
        return self._row_to_log(row) if row else None

    def update_log(self, log: MessageLog, expected_status: MessageStatus) -> MessageLog:
        """Replace a row only if its stored status is still *expected_status*."""
        columns = _LOG_COLUMNS[1:]
        assignments = ", ".join(f"{col} = ?" for col in columns)
        values = self._log_to_row(log)[1:]

        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            cursor = conn.execute(
                f"UPDATE message_logs SET {assignments} WHERE id = ? AND status = ?",
                (*values, log.id, expected_status.value),
            )
            if cursor.rowcount == 1:
                conn.execute("COMMIT")
                return log
            row = conn.execute(
                "SELECT status FROM message_logs WHERE id = ?", (log.id,)
            ).fetchone()
            conn.execute("ROLLBACK")
        finally:
            conn.close()

        if row is None:
            raise MessageNotFoundError(log.id)
        raise ConcurrencyConflictError(
            f"Message {log.id} is {row['status']}, expected {expected_status.value}"
        )

    def list_logs(self, application_id: str | None = None) -> list[MessageLog]:
        conn = self._connect()
        try:
            if application_id is None:
                rows = conn.execute(
                    "SELECT * FROM message_logs ORDER BY seq ASC"
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM message_logs WHERE application_id = ? ORDER BY seq ASC",
                    (application_id,),
                ).fetchall()
        finally:
            conn.close()
        return [self._row_to_log(row) for row in rows]

    def list_chain(self, origin_id: str) -> list[MessageLog]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT * FROM message_logs WHERE id = ? OR escalation_origin = ? "
                "ORDER BY escalation_attempt ASC, seq ASC",
                (origin_id, origin_id),
            ).fetchall()
        finally:
            conn.close()
        return [self._row_to_log(row) for row in rows]

    # ------------------------------------------------------------------
    # Escalation watches
    # ------------------------------------------------------------------

    def save_watch(self, watch: EscalationWatch) -> EscalationWatch:
        placeholders = ", ".join("?" for _ in _WATCH_COLUMNS)
        conn = self._connect()
        try:
            conn.execute(
                f"INSERT OR REPLACE INTO escalation_watches ({', '.join(_WATCH_COLUMNS)}) "
                f"VALUES ({placeholders})",
                (
                    watch.log_id,
                    watch.event_id,
                    watch.application_id,
                    watch.channel_id,
                    _ts(watch.due_at),
                    watch.state.value,
                    watch.reason,
                    _ts(watch.updated_at),
                ),
            )
        finally:
            conn.close()
        return watch

    def get_watch(self, log_id: str) -> EscalationWatch | None:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT * FROM escalation_watches WHERE log_id = ?", (log_id,)
            ).fetchone()
        finally:
            conn.close()
        return self._row_to_watch(row) if row else None

    def list_due_watches(self, now: datetime) -> list[EscalationWatch]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT * FROM escalation_watches WHERE state = ? AND due_at <= ? "
                "ORDER BY due_at ASC",
                (WatchState.PENDING.value, _ts(now)),
            ).fetchall()
        finally:
            conn.close()
        return [self._row_to_watch(row) for row in rows]

    def list_watches(
        self,
        application_id: str | None = None,
        state: WatchState | None = None,
    ) -> list[EscalationWatch]:
        clauses: list[str] = []
        params: list[str] = []
        if application_id is not None:
            clauses.append("application_id = ?")
            params.append(application_id)
        if state is not None:
            clauses.append("state = ?")
            params.append(state.value)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""

        conn = self._connect()
        try:
            rows = conn.execute(
                f"SELECT * FROM escalation_watches{where} ORDER BY due_at ASC",
                params,
            ).fetchall()
        finally:
            conn.close()
        return [self._row_to_watch(row) for row in rows]

    def transition_watch(
        self,
        log_id: str,
        expected: WatchState,
        new_state: WatchState,
        reason: str | None = None,
    ) -> bool:
        conn = self._connect()
        try:
            cursor = conn.execute(
                "UPDATE escalation_watches SET state = ?, reason = ?, updated_at = ? "
                "WHERE log_id = ? AND state = ?",
                (
                    new_state.value,
                    reason,
                    _ts(datetime.now(timezone.utc)),
                    log_id,
                    expected.value,
                ),
            )
            return cursor.rowcount == 1
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _log_to_row(log: MessageLog) -> tuple:
        return (
            log.id,
            log.application_id,
            log.event_id,
            log.channel_id,
            log.recipient_type.value,
            log.recipient_id,
            log.recipient_name,
            log.recipient_contact,
            log.template_id,
            log.routing_rule_id,
            log.subject,
            log.body,
            log.status.value,
            _ts(log.sent_at),
            _ts(log.delivered_at),
            _ts(log.opened_at),
            _ts(log.clicked_at),
            _ts(log.replied_at),
            _ts(log.failed_at),
            log.failure_reason,
            log.provider_reference,
            log.escalated_from,
            log.escalation_origin,
            log.escalation_attempt,
        )

    @staticmethod
    def _row_to_log(row: sqlite3.Row) -> MessageLog:
        """Convert a SQLite row to a MessageLog (pydantic parses timestamps)."""
        return MessageLog.model_validate({col: row[col] for col in _LOG_COLUMNS})

    @staticmethod
    def _row_to_watch(row: sqlite3.Row) -> EscalationWatch:
        return EscalationWatch.model_validate({col: row[col] for col in _WATCH_COLUMNS})
