"""Record store contract and an in-memory implementation."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import date, datetime
from typing import Iterable, Optional, Protocol

from routine_engine.schema import STATUS_PENDING, Occurrence, RecurrencePattern

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base class for record store failures."""


class DuplicateOccurrenceError(StoreError):
    """An occurrence already exists for the same (owner, title, date)."""


class RecordStore(Protocol):
    """What the engine needs from durable storage.

    Implementations must enforce uniqueness on (owner_id, title, date) and make
    ``create_if_absent`` and ``insert_batch`` atomic with respect to it.
    """

    def list_occurrences(
        self,
        owner_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        limit: Optional[int] = None,
        newest_first: bool = False,
    ) -> list[Occurrence]: ...

    def get_occurrence(self, occurrence_id: int) -> Optional[Occurrence]: ...

    def existing_dates(self, owner_id: str, title: str, start: date, end: date) -> set[date]: ...

    def create_if_absent(self, occurrence: Occurrence) -> tuple[Occurrence, bool]: ...

    def insert_batch(self, occurrences: list[Occurrence]) -> int: ...

    def set_status(self, occurrence_id: int, status: str, now: datetime) -> Occurrence: ...

    def reschedule(self, occurrence_id: int, new_date: date, now: datetime) -> bool: ...

    def list_overdue_pending(self, today: date) -> list[Occurrence]: ...

    def list_pending_due_between(self, start: datetime, end: datetime) -> list[Occurrence]: ...

    def list_pending_on(self, day: date) -> list[Occurrence]: ...

    def add_pattern(self, pattern: RecurrencePattern) -> RecurrencePattern: ...

    def get_pattern(self, pattern_id: int) -> Optional[RecurrencePattern]: ...

    def list_active_patterns(self, today: date) -> list[RecurrencePattern]: ...

    def advance_checkpoint(self, pattern_id: int, day: date) -> date: ...

    def record_reminder(self, key: str) -> bool: ...


class MemoryStore:
    """Thread-safe in-process store, used by tests and the file-based CLI."""

    def __init__(self, occurrences: Iterable[Occurrence] = (), patterns: Iterable[RecurrencePattern] = ()):
        self._lock = threading.Lock()
        self._occurrences: dict[int, Occurrence] = {}
        self._index: dict[tuple[str, str, date], int] = {}
        self._patterns: dict[int, RecurrencePattern] = {}
        self._reminders: set[str] = set()
        self._next_occurrence_id = 1
        self._next_pattern_id = 1
        for occurrence in occurrences:
            self.create_if_absent(occurrence)
        for pattern in patterns:
            self.add_pattern(pattern)

    def _insert_locked(self, occurrence: Occurrence) -> tuple[Occurrence, bool]:
        existing_id = self._index.get(occurrence.key)
        if existing_id is not None:
            return self._occurrences[existing_id], False
        occurrence_id = occurrence.occurrence_id
        if occurrence_id is None or occurrence_id in self._occurrences:
            occurrence_id = self._next_occurrence_id
        self._next_occurrence_id = max(self._next_occurrence_id, occurrence_id) + 1
        stored = replace(occurrence, occurrence_id=occurrence_id)
        self._occurrences[occurrence_id] = stored
        self._index[stored.key] = occurrence_id
        return stored, True

    def list_occurrences(self, owner_id, start=None, end=None, limit=None, newest_first=False):
        with self._lock:
            rows = [
                occ
                for occ in self._occurrences.values()
                if occ.owner_id == owner_id
                and (start is None or occ.date >= start)
                and (end is None or occ.date <= end)
            ]
        rows.sort(key=lambda occ: (occ.date, occ.occurrence_id), reverse=newest_first)
        return rows[:limit] if limit is not None else rows

    def get_occurrence(self, occurrence_id):
        with self._lock:
            return self._occurrences.get(occurrence_id)

    def existing_dates(self, owner_id, title, start, end):
        with self._lock:
            return {
                day for (owner, name, day) in self._index if owner == owner_id and name == title and start <= day <= end
            }

    def create_if_absent(self, occurrence):
        with self._lock:
            return self._insert_locked(occurrence)

    def insert_batch(self, occurrences):
        created = 0
        with self._lock:
            for occurrence in occurrences:
                _, was_created = self._insert_locked(occurrence)
                created += int(was_created)
        return created

    def set_status(self, occurrence_id, status, now):
        """Change only status, completion time and ``updated_at``; the date stays as stored."""

        with self._lock:
            current = self._occurrences.get(occurrence_id)
            if current is None:
                raise StoreError(f"occurrence {occurrence_id} not found")
            updated = current.with_status(status, now)
            self._occurrences[occurrence_id] = updated
        return updated

    def reschedule(self, occurrence_id, new_date, now):
        """Move a pending occurrence; returns False when it is no longer pending."""

        with self._lock:
            current = self._occurrences.get(occurrence_id)
            if current is None:
                raise StoreError(f"occurrence {occurrence_id} not found")
            if current.status != STATUS_PENDING:
                return False
            moved = replace(current, date=new_date, updated_at=now)
            holder = self._index.get(moved.key)
            if holder is not None and holder != occurrence_id:
                raise DuplicateOccurrenceError(f"occurrence already exists for {moved.key}")
            del self._index[current.key]
            self._occurrences[occurrence_id] = moved
            self._index[moved.key] = occurrence_id
        return True

    def list_overdue_pending(self, today):
        with self._lock:
            rows = [
                occ
                for occ in self._occurrences.values()
                if occ.status == STATUS_PENDING
                and occ.date < today
                and occ.due_date is not None
                and occ.due_date.date() < today
            ]
        return sorted(rows, key=lambda occ: occ.occurrence_id)

    def list_pending_due_between(self, start, end):
        with self._lock:
            rows = [
                occ
                for occ in self._occurrences.values()
                if occ.status == STATUS_PENDING and occ.due_date is not None and start <= occ.due_date <= end
            ]
        return sorted(rows, key=lambda occ: (occ.due_date, occ.occurrence_id))

    def list_pending_on(self, day):
        with self._lock:
            rows = [occ for occ in self._occurrences.values() if occ.status == STATUS_PENDING and occ.date == day]
        return sorted(rows, key=lambda occ: (occ.owner_id, occ.occurrence_id))

    def add_pattern(self, pattern):
        with self._lock:
            pattern_id = pattern.pattern_id
            if pattern_id is None or pattern_id in self._patterns:
                pattern_id = self._next_pattern_id
            self._next_pattern_id = max(self._next_pattern_id, pattern_id) + 1
            stored = replace(pattern, pattern_id=pattern_id)
            self._patterns[pattern_id] = stored
        return stored

    def get_pattern(self, pattern_id):
        with self._lock:
            return self._patterns.get(pattern_id)

    def list_active_patterns(self, today):
        with self._lock:
            rows = [
                pattern
                for pattern in self._patterns.values()
                if pattern.is_active
                and pattern.start_date <= today
                and (pattern.end_date is None or pattern.end_date >= today or _behind(pattern))
            ]
        return sorted(rows, key=lambda pattern: pattern.pattern_id)

    def advance_checkpoint(self, pattern_id, day):
        with self._lock:
            pattern = self._patterns.get(pattern_id)
            if pattern is None:
                raise StoreError(f"pattern {pattern_id} not found")
            current = pattern.last_generated_date
            if current is not None and current >= day:
                return current
            self._patterns[pattern_id] = replace(pattern, last_generated_date=day)
        logger.debug("pattern %s checkpoint advanced to %s", pattern_id, day)
        return day

    def record_reminder(self, key):
        with self._lock:
            if key in self._reminders:
                return False
            self._reminders.add(key)
            return True


def _behind(pattern: RecurrencePattern) -> bool:
    """An ended pattern whose checkpoint never reached its end date."""

    return pattern.end_date is not None and (
        pattern.last_generated_date is None or pattern.last_generated_date < pattern.end_date
    )
