"""Deadline reminders and the daily pending digest."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable, Iterable, Optional

from routine_engine.schema import STATUS_PENDING, Occurrence
from routine_engine.store import RecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reminder:
    owner_id: str
    message: str
    key: str
    occurrence_id: Optional[int] = None


@dataclass(frozen=True)
class ReminderReport:
    candidates: int
    sent: int
    duplicates: int
    failed: int


Notifier = Callable[[Reminder], None]


def reminder_horizon(now: datetime) -> datetime:
    """End of tomorrow."""

    return datetime.combine(now.date() + timedelta(days=1), time.max)


def due_message(title: str, due: datetime, now: datetime) -> str:
    hours = round((due - now).total_seconds() / 3600)
    if hours < 1:
        return f'Task "{title}" is due very soon!'
    if hours < 24:
        return f'Task "{title}" is due in {hours} hours'
    return f'Task "{title}" is due tomorrow'


def deadline_reminders(occurrences: Iterable[Occurrence], now: datetime) -> list[Reminder]:
    """Reminders for pending occurrences due between ``now`` and end of tomorrow."""

    horizon = reminder_horizon(now)
    reminders = []
    for occurrence in occurrences:
        due = occurrence.due_date
        if occurrence.status != STATUS_PENDING or due is None or not now <= due <= horizon:
            continue
        reminders.append(
            Reminder(
                owner_id=occurrence.owner_id,
                message=due_message(occurrence.title, due, now),
                key=f"deadline:{occurrence.occurrence_id}:{due.isoformat()}",
                occurrence_id=occurrence.occurrence_id,
            )
        )
    return reminders


def daily_digest(occurrences: Iterable[Occurrence], today: date) -> list[Reminder]:
    """One reminder per owner with pending occurrences scheduled ``today``."""

    counts: dict[str, int] = defaultdict(int)
    for occurrence in occurrences:
        if occurrence.status == STATUS_PENDING and occurrence.date == today:
            counts[occurrence.owner_id] += 1
    return [
        Reminder(
            owner_id=owner_id,
            message=f"You have {count} pending task(s) from today.",
            key=f"digest:{owner_id}:{today.isoformat()}",
        )
        for owner_id, count in sorted(counts.items())
    ]


def _deliver(store: RecordStore, notify: Notifier, reminders: list[Reminder]) -> ReminderReport:
    sent = duplicates = failed = 0
    for reminder in reminders:
        if not store.record_reminder(reminder.key):
            duplicates += 1
            continue
        try:
            notify(reminder)
        except Exception:  # noqa: BLE001
            logger.warning("failed to deliver reminder %s to owner %s", reminder.key, reminder.owner_id, exc_info=True)
            failed += 1
        else:
            sent += 1
    return ReminderReport(candidates=len(reminders), sent=sent, duplicates=duplicates, failed=failed)


def emit_reminders(store: RecordStore, notify: Notifier, now: datetime) -> ReminderReport:
    """Send each upcoming-deadline reminder at most once."""

    occurrences = store.list_pending_due_between(now, reminder_horizon(now))
    report = _deliver(store, notify, deadline_reminders(occurrences, now))
    logger.info("sent %d deadline reminders (%d already sent, %d failed)", report.sent, report.duplicates, report.failed)
    return report


def emit_daily_digest(store: RecordStore, notify: Notifier, now: datetime) -> ReminderReport:
    today = now.date()
    report = _deliver(store, notify, daily_digest(store.list_pending_on(today), today))
    logger.info("sent daily digest to %d owners", report.sent)
    return report
