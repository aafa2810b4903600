"""SQLite-backed record store.

The UNIQUE(owner_id, title, date) constraint is what keeps concurrent
generators from writing the same occurrence twice; every insert is an
``INSERT OR IGNORE`` against it.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterator, Optional

from routine_engine.schema import STATUS_COMPLETED, STATUS_PENDING, STATUSES, Occurrence, RecurrencePattern
from routine_engine.store import DuplicateOccurrenceError, StoreError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_SCHEMA = """
CREATE TABLE IF NOT EXISTS occurrences (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id TEXT NOT NULL,
    title TEXT NOT NULL,
    date TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    end_date TEXT,
    due_date TEXT,
    status TEXT NOT NULL DEFAULT 'pending',
    completed_at TEXT,
    category TEXT,
    priority TEXT,
    estimated_minutes INTEGER,
    actual_minutes INTEGER,
    is_recurring INTEGER NOT NULL DEFAULT 0,
    recurrence_pattern TEXT,
    recurrence_interval INTEGER,
    pattern_id INTEGER,
    created_at TEXT,
    updated_at TEXT,
    UNIQUE (owner_id, title, date)
);
CREATE INDEX IF NOT EXISTS idx_occurrences_owner_date ON occurrences (owner_id, date);
CREATE INDEX IF NOT EXISTS idx_occurrences_status_date ON occurrences (status, date);
CREATE TABLE IF NOT EXISTS patterns (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id TEXT NOT NULL,
    title TEXT NOT NULL,
    pattern_type TEXT NOT NULL,
    start_date TEXT NOT NULL,
    end_date TEXT,
    interval INTEGER,
    last_generated_date TEXT,
    description TEXT NOT NULL DEFAULT '',
    category TEXT,
    priority TEXT,
    estimated_minutes INTEGER,
    is_active INTEGER NOT NULL DEFAULT 1
);
CREATE TABLE IF NOT EXISTS reminders (
    key TEXT PRIMARY KEY,
    recorded_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
"""

_OCCURRENCE_COLUMNS = (
    "owner_id",
    "title",
    "date",
    "description",
    "end_date",
    "due_date",
    "status",
    "completed_at",
    "category",
    "priority",
    "estimated_minutes",
    "actual_minutes",
    "is_recurring",
    "recurrence_pattern",
    "recurrence_interval",
    "pattern_id",
    "created_at",
    "updated_at",
)

_PATTERN_COLUMNS = (
    "owner_id",
    "title",
    "pattern_type",
    "start_date",
    "end_date",
    "interval",
    "last_generated_date",
    "description",
    "category",
    "priority",
    "estimated_minutes",
    "is_active",
)


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _occurrence_params(occurrence: Occurrence) -> tuple:
    return (
        occurrence.owner_id,
        occurrence.title,
        occurrence.date.isoformat(),
        occurrence.description or "",
        _iso(occurrence.end_date),
        _iso(occurrence.due_date),
        occurrence.status,
        _iso(occurrence.completed_at),
        occurrence.category,
        occurrence.priority,
        occurrence.estimated_minutes,
        occurrence.actual_minutes,
        int(occurrence.is_recurring),
        occurrence.recurrence_pattern,
        occurrence.recurrence_interval,
        occurrence.pattern_id,
        _iso(occurrence.created_at),
        _iso(occurrence.updated_at),
    )


def _row_to_occurrence(row: sqlite3.Row) -> Occurrence:
    return Occurrence(
        occurrence_id=row["id"],
        owner_id=row["owner_id"],
        title=row["title"],
        date=date.fromisoformat(row["date"]),
        description=row["description"] or "",
        end_date=_date(row["end_date"]),
        due_date=_datetime(row["due_date"]),
        status=row["status"],
        completed_at=_datetime(row["completed_at"]),
        category=row["category"],
        priority=row["priority"],
        estimated_minutes=row["estimated_minutes"],
        actual_minutes=row["actual_minutes"],
        is_recurring=bool(row["is_recurring"]),
        recurrence_pattern=row["recurrence_pattern"],
        recurrence_interval=row["recurrence_interval"],
        pattern_id=row["pattern_id"],
        created_at=_datetime(row["created_at"]),
        updated_at=_datetime(row["updated_at"]),
    )


def _row_to_pattern(row: sqlite3.Row) -> RecurrencePattern:
    return RecurrencePattern(
        pattern_id=row["id"],
        owner_id=row["owner_id"],
        title=row["title"],
        pattern_type=row["pattern_type"],
        start_date=date.fromisoformat(row["start_date"]),
        end_date=_date(row["end_date"]),
        interval=row["interval"],
        last_generated_date=_date(row["last_generated_date"]),
        description=row["description"] or "",
        category=row["category"],
        priority=row["priority"],
        estimated_minutes=row["estimated_minutes"],
        is_active=bool(row["is_active"]),
    )


class SQLiteStore:
    """Record store over a single SQLite file."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        with self._connect() as conn:
            conn.executescript(_SCHEMA)
            conn.execute(f"PRAGMA user_version={SCHEMA_VERSION}")

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path, timeout=30, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _fetch_occurrence(self, conn: sqlite3.Connection, where: str, params: tuple) -> Optional[Occurrence]:
        row = conn.execute(f"SELECT * FROM occurrences WHERE {where}", params).fetchone()
        return _row_to_occurrence(row) if row is not None else None

    def list_occurrences(self, owner_id, start=None, end=None, limit=None, newest_first=False):
        clauses = ["owner_id = ?"]
        params: list = [owner_id]
        if start is not None:
            clauses.append("date >= ?")
            params.append(start.isoformat())
        if end is not None:
            clauses.append("date <= ?")
            params.append(end.isoformat())
        order = "DESC" if newest_first else "ASC"
        sql = f"SELECT * FROM occurrences WHERE {' AND '.join(clauses)} ORDER BY date {order}, id {order}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        with self._connect() as conn:
            return [_row_to_occurrence(row) for row in conn.execute(sql, params).fetchall()]

    def get_occurrence(self, occurrence_id):
        with self._connect() as conn:
            return self._fetch_occurrence(conn, "id = ?", (occurrence_id,))

    def existing_dates(self, owner_id, title, start, end):
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT date FROM occurrences WHERE owner_id = ? AND title = ? AND date BETWEEN ? AND ?",
                (owner_id, title, start.isoformat(), end.isoformat()),
            ).fetchall()
        return {date.fromisoformat(row["date"]) for row in rows}

    def create_if_absent(self, occurrence):
        placeholders = ", ".join("?" for _ in _OCCURRENCE_COLUMNS)
        with self._connect() as conn:
            cursor = conn.execute(
                f"INSERT OR IGNORE INTO occurrences ({', '.join(_OCCURRENCE_COLUMNS)}) VALUES ({placeholders})",
                _occurrence_params(occurrence),
            )
            created = cursor.rowcount == 1
            stored = self._fetch_occurrence(
                conn,
                "owner_id = ? AND title = ? AND date = ?",
                (occurrence.owner_id, occurrence.title, occurrence.date.isoformat()),
            )
        if stored is None:
            raise StoreError(f"occurrence for {occurrence.key} vanished after insert")
        return stored, created

    def insert_batch(self, occurrences):
        placeholders = ", ".join("?" for _ in _OCCURRENCE_COLUMNS)
        with self._connect() as conn:
            before = conn.total_changes
            conn.executemany(
                f"INSERT OR IGNORE INTO occurrences ({', '.join(_OCCURRENCE_COLUMNS)}) VALUES ({placeholders})",
                [_occurrence_params(occurrence) for occurrence in occurrences],
            )
            return conn.total_changes - before

    def set_status(self, occurrence_id, status, now):
        if status not in STATUSES:
            raise ValueError(f"invalid status '{status}'")
        # SET expressions read the row as it was before this statement.
        with self._connect() as conn:
            conn.execute(
                "UPDATE occurrences SET "
                "completed_at = CASE WHEN ? = ? THEN "
                "CASE WHEN status = ? AND completed_at IS NOT NULL THEN completed_at ELSE ? END "
                "ELSE NULL END, "
                "status = ?, updated_at = ? WHERE id = ?",
                (
                    status,
                    STATUS_COMPLETED,
                    STATUS_COMPLETED,
                    now.isoformat(),
                    status,
                    now.isoformat(),
                    occurrence_id,
                ),
            )
            updated = self._fetch_occurrence(conn, "id = ?", (occurrence_id,))
        if updated is None:
            raise StoreError(f"occurrence {occurrence_id} not found")
        return updated

    def reschedule(self, occurrence_id, new_date, now):
        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    "UPDATE occurrences SET date = ?, updated_at = ? WHERE id = ? AND status = ?",
                    (new_date.isoformat(), now.isoformat(), occurrence_id, STATUS_PENDING),
                )
                if cursor.rowcount == 1:
                    return True
                exists = conn.execute("SELECT 1 FROM occurrences WHERE id = ?", (occurrence_id,)).fetchone()
        except sqlite3.IntegrityError as exc:
            raise DuplicateOccurrenceError(f"occurrence {occurrence_id} collides on {new_date}") from exc
        if exists is None:
            raise StoreError(f"occurrence {occurrence_id} not found")
        return False

    def list_overdue_pending(self, today):
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM occurrences WHERE status = ? AND date < ? AND due_date IS NOT NULL "
                "AND substr(due_date, 1, 10) < ? ORDER BY id",
                (STATUS_PENDING, today.isoformat(), today.isoformat()),
            ).fetchall()
        return [_row_to_occurrence(row) for row in rows]

    def list_pending_due_between(self, start, end):
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM occurrences WHERE status = ? AND due_date IS NOT NULL "
                "AND due_date BETWEEN ? AND ? ORDER BY due_date, id",
                (STATUS_PENDING, start.isoformat(), end.isoformat()),
            ).fetchall()
        return [_row_to_occurrence(row) for row in rows]

    def list_pending_on(self, day):
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM occurrences WHERE status = ? AND date = ? ORDER BY owner_id, id",
                (STATUS_PENDING, day.isoformat()),
            ).fetchall()
        return [_row_to_occurrence(row) for row in rows]

    def add_pattern(self, pattern):
        placeholders = ", ".join("?" for _ in _PATTERN_COLUMNS)
        with self._connect() as conn:
            cursor = conn.execute(
                f"INSERT INTO patterns ({', '.join(_PATTERN_COLUMNS)}) VALUES ({placeholders})",
                (
                    pattern.owner_id,
                    pattern.title,
                    pattern.pattern_type,
                    pattern.start_date.isoformat(),
                    _iso(pattern.end_date),
                    pattern.interval,
                    _iso(pattern.last_generated_date),
                    pattern.description or "",
                    pattern.category,
                    pattern.priority,
                    pattern.estimated_minutes,
                    int(pattern.is_active),
                ),
            )
            row = conn.execute("SELECT * FROM patterns WHERE id = ?", (cursor.lastrowid,)).fetchone()
        return _row_to_pattern(row)

    def get_pattern(self, pattern_id):
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM patterns WHERE id = ?", (pattern_id,)).fetchone()
        return _row_to_pattern(row) if row is not None else None

    def list_active_patterns(self, today):
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM patterns WHERE is_active = 1 AND start_date <= ? "
                "AND (end_date IS NULL OR end_date >= ? OR last_generated_date IS NULL "
                "OR last_generated_date < end_date) ORDER BY id",
                (today.isoformat(), today.isoformat()),
            ).fetchall()
        return [_row_to_pattern(row) for row in rows]

    def advance_checkpoint(self, pattern_id, day):
        with self._connect() as conn:
            conn.execute(
                "UPDATE patterns SET last_generated_date = ? WHERE id = ? "
                "AND (last_generated_date IS NULL OR last_generated_date < ?)",
                (day.isoformat(), pattern_id, day.isoformat()),
            )
            row = conn.execute("SELECT last_generated_date FROM patterns WHERE id = ?", (pattern_id,)).fetchone()
        if row is None:
            raise StoreError(f"pattern {pattern_id} not found")
        return date.fromisoformat(row["last_generated_date"])

    def record_reminder(self, key):
        with self._connect() as conn:
            cursor = conn.execute("INSERT OR IGNORE INTO reminders (key) VALUES (?)", (key,))
            return cursor.rowcount == 1
