"""Recurrence expansion and idempotent occurrence generation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

from routine_engine.schema import (
    PATTERN_CUSTOM,
    PATTERN_DAILY,
    PATTERN_MONTHLY,
    PATTERN_WEEKLY,
    STATUS_COMPLETED,
    STATUS_PENDING,
    Occurrence,
    PatternConfigError,
    RecurrencePattern,
    normalize_pattern_type,
)
from routine_engine.store import RecordStore, StoreError

logger = logging.getLogger(__name__)

_FIXED_STEP_DAYS = {PATTERN_DAILY: 1, PATTERN_WEEKLY: 7}

SPAWN_CREATED = "created"
SPAWN_EXISTS = "exists"
SPAWN_ENDED = "ended"
SPAWN_SKIPPED = "skipped"
SPAWN_INVALID = "invalid"


@dataclass(frozen=True)
class PatternRun:
    pattern_id: Optional[int]
    created: int
    existing: int
    failed: int
    checkpoint: Optional[date]


@dataclass(frozen=True)
class GenerationReport:
    patterns: int
    skipped_patterns: int
    created: int
    existing: int
    failed: int


@dataclass(frozen=True)
class SpawnResult:
    status: str
    occurrence: Optional[Occurrence] = None


@dataclass(frozen=True)
class BulkReport:
    created: int
    existing: int
    failed: int
    start: date
    end: date


def _step_days(kind: str, interval) -> int:
    if kind in _FIXED_STEP_DAYS:
        return _FIXED_STEP_DAYS[kind]
    try:
        days = int(interval)
    except (TypeError, ValueError):
        days = 0
    if days <= 0:
        raise PatternConfigError(f"custom pattern needs a positive interval, got {interval!r}")
    return days


def next_date(day: date, pattern_type: str, interval=None) -> date:
    """Single step of the recurrence rule from ``day``.

    Monthly steps keep the day of month, clamped to the last day of shorter
    months (Jan 31 -> Feb 28/29).
    """

    kind = normalize_pattern_type(pattern_type)
    if kind == PATTERN_MONTHLY:
        return day + relativedelta(months=1)
    return day + timedelta(days=_step_days(kind, interval))


def series_dates(
    start: date,
    pattern_type: str,
    until: date,
    interval=None,
    after: Optional[date] = None,
) -> list[date]:
    """Dates of the series anchored at ``start`` in ``(after, until]``.

    Every date is computed from the anchor rather than from the previous
    date, so a clamped month recovers its day (Jan 31, Feb 29, Mar 31).
    """

    kind = normalize_pattern_type(pattern_type)
    step = None if kind == PATTERN_MONTHLY else _step_days(kind, interval)

    def nth(n: int) -> date:
        if step is None:
            return start + relativedelta(months=n)
        return start + timedelta(days=n * step)

    index = 0
    if after is not None and after >= start:
        if step is None:
            index = (after.year - start.year) * 12 + (after.month - start.month)
        else:
            index = (after - start).days // step + 1

    dates = []
    day = nth(index)
    while after is not None and day <= after:
        index += 1
        day = nth(index)
    while day <= until:
        dates.append(day)
        index += 1
        day = nth(index)
    return dates


def _occurrence_from_pattern(pattern: RecurrencePattern, kind: str, day: date, now: datetime) -> Occurrence:
    return Occurrence(
        owner_id=pattern.owner_id,
        title=pattern.title,
        date=day,
        description=pattern.description or "",
        end_date=pattern.end_date,
        status=STATUS_PENDING,
        category=pattern.category,
        priority=pattern.priority,
        estimated_minutes=pattern.estimated_minutes,
        is_recurring=True,
        recurrence_pattern=kind,
        recurrence_interval=pattern.interval if kind == PATTERN_CUSTOM else None,
        pattern_id=pattern.pattern_id,
        created_at=now,
        updated_at=now,
    )


def generate_for_pattern(store: RecordStore, pattern: RecurrencePattern, today: date, now: datetime) -> PatternRun:
    """Materialize the pattern's dates after its checkpoint up to ``today``.

    Raises ``PatternConfigError`` for a pattern that cannot be expanded.
    """

    kind = normalize_pattern_type(pattern.pattern_type)
    until = today if pattern.end_date is None else min(today, pattern.end_date)
    checkpoint = pattern.last_generated_date
    if until < pattern.start_date:
        return PatternRun(pattern.pattern_id, 0, 0, 0, checkpoint)

    dates = series_dates(pattern.start_date, kind, until, interval=pattern.interval, after=checkpoint)

    created = existing = failed = 0
    first_failure = None
    for day in dates:
        try:
            _, was_created = store.create_if_absent(_occurrence_from_pattern(pattern, kind, day, now))
        except Exception:  # noqa: BLE001
            logger.warning("pattern %s: failed to create occurrence for %s", pattern.pattern_id, day, exc_info=True)
            failed += 1
            if first_failure is None:
                first_failure = day
            continue
        if was_created:
            created += 1
        else:
            existing += 1
            logger.debug("pattern %s: occurrence for %s already exists", pattern.pattern_id, day)

    target = until if first_failure is None else first_failure - timedelta(days=1)
    if pattern.pattern_id is not None and (checkpoint is None or target > checkpoint):
        checkpoint = store.advance_checkpoint(pattern.pattern_id, target)
    return PatternRun(pattern.pattern_id, created, existing, failed, checkpoint)


def generate_recurring(store: RecordStore, today: date, now: datetime) -> GenerationReport:
    """Periodic expansion of every active pattern; one bad pattern never stops the run."""

    patterns = store.list_active_patterns(today)
    skipped = created = existing = failed = 0
    for pattern in patterns:
        try:
            run = generate_for_pattern(store, pattern, today, now)
        except PatternConfigError as exc:
            logger.warning("skipping pattern %s (owner %s): %s", pattern.pattern_id, pattern.owner_id, exc)
            skipped += 1
            continue
        except Exception:  # noqa: BLE001
            logger.warning("pattern %s (owner %s): generation failed", pattern.pattern_id, pattern.owner_id, exc_info=True)
            failed += 1
            continue
        created += run.created
        existing += run.existing
        failed += run.failed

    logger.info(
        "created %d occurrences from %d patterns (%d existing, %d failed, %d skipped)",
        created,
        len(patterns),
        existing,
        failed,
        skipped,
    )
    return GenerationReport(
        patterns=len(patterns),
        skipped_patterns=skipped,
        created=created,
        existing=existing,
        failed=failed,
    )


def spawn_next_occurrence(store: RecordStore, occurrence: Occurrence, now: datetime) -> SpawnResult:
    """Create the single next occurrence after a recurring one is completed.

    The step is taken from the occurrence's own date, not from the pattern
    checkpoint, and an occurrence already covering the next date counts as
    success.
    """

    if not occurrence.is_recurring or occurrence.status != STATUS_COMPLETED:
        return SpawnResult(SPAWN_SKIPPED)

    pattern = store.get_pattern(occurrence.pattern_id) if occurrence.pattern_id is not None else None
    pattern_type = occurrence.recurrence_pattern or (pattern.pattern_type if pattern else None)
    interval = occurrence.recurrence_interval
    if interval is None and pattern is not None:
        interval = pattern.interval

    try:
        upcoming = next_date(occurrence.date, pattern_type, interval)
    except PatternConfigError as exc:
        logger.warning("occurrence %s: cannot compute next date: %s", occurrence.occurrence_id, exc)
        return SpawnResult(SPAWN_INVALID)

    end_dates = [day for day in (occurrence.end_date, pattern.end_date if pattern else None) if day is not None]
    if end_dates and upcoming > min(end_dates):
        return SpawnResult(SPAWN_ENDED)

    due_date = None
    if occurrence.due_date is not None:
        due_date = occurrence.due_date + (upcoming - occurrence.date)

    candidate = Occurrence(
        owner_id=occurrence.owner_id,
        title=occurrence.title,
        date=upcoming,
        description=occurrence.description,
        end_date=occurrence.end_date,
        due_date=due_date,
        status=STATUS_PENDING,
        category=occurrence.category,
        priority=occurrence.priority,
        estimated_minutes=occurrence.estimated_minutes,
        is_recurring=True,
        recurrence_pattern=normalize_pattern_type(pattern_type),
        recurrence_interval=interval,
        pattern_id=occurrence.pattern_id,
        created_at=now,
        updated_at=now,
    )
    stored, was_created = store.create_if_absent(candidate)
    return SpawnResult(SPAWN_CREATED if was_created else SPAWN_EXISTS, stored)


def complete_occurrence(store: RecordStore, occurrence_id: int, now: datetime) -> tuple[Occurrence, SpawnResult]:
    """Mark an occurrence completed and spawn its successor when recurring.

    Only the status fields are written, so a date moved by a concurrent
    overdue migration is kept.
    """

    occurrence = store.get_occurrence(occurrence_id)
    if occurrence is None:
        raise StoreError(f"occurrence {occurrence_id} not found")
    was_completed = occurrence.is_completed
    occurrence = store.set_status(occurrence_id, STATUS_COMPLETED, now)
    if was_completed or not occurrence.is_recurring:
        return occurrence, SpawnResult(SPAWN_SKIPPED)

    try:
        spawned = spawn_next_occurrence(store, occurrence, now)
    except Exception:  # noqa: BLE001
        logger.warning("occurrence %s: next occurrence not created", occurrence_id, exc_info=True)
        spawned = SpawnResult(SPAWN_SKIPPED)
    return occurrence, spawned


def reopen_occurrence(store: RecordStore, occurrence_id: int, now: datetime) -> Occurrence:
    return store.set_status(occurrence_id, STATUS_PENDING, now)


def span_end_for_months(start: date, months: int) -> date:
    """Inclusive end of a span covering ``months`` calendar months from ``start``."""

    return start + relativedelta(months=int(months))


def expand_span(
    store: RecordStore,
    template: Occurrence,
    start: date,
    end: date,
    now: datetime,
    pattern_type: str = PATTERN_DAILY,
    interval=None,
) -> BulkReport:
    """Write every series date in ``[start, end]`` not already covered, as one batch.

    Unlike periodic generation this never touches a pattern checkpoint.
    """

    kind = normalize_pattern_type(pattern_type)
    dates = series_dates(start, kind, end, interval=interval)
    covered = store.existing_dates(template.owner_id, template.title, start, end)
    batch = [
        replace(
            template,
            occurrence_id=None,
            date=day,
            end_date=end,
            status=STATUS_PENDING,
            completed_at=None,
            is_recurring=True,
            recurrence_pattern=kind,
            recurrence_interval=interval if kind == PATTERN_CUSTOM else None,
            created_at=now,
            updated_at=now,
        )
        for day in dates
        if day not in covered
    ]

    if not batch:
        return BulkReport(created=0, existing=len(dates), failed=0, start=start, end=end)

    try:
        created = store.insert_batch(batch)
        failed = 0
    except Exception:  # noqa: BLE001
        logger.warning("batch insert of %d occurrences failed, retrying one by one", len(batch), exc_info=True)
        created = failed = 0
        for occurrence in batch:
            try:
                _, was_created = store.create_if_absent(occurrence)
            except Exception:  # noqa: BLE001
                logger.warning("failed to create occurrence for %s", occurrence.date, exc_info=True)
                failed += 1
                continue
            created += int(was_created)

    existing = len(dates) - created - failed
    logger.info("bulk expansion of '%s' for owner %s: %d created, %d existing", template.title, template.owner_id, created, existing)
    return BulkReport(created=created, existing=existing, failed=failed, start=start, end=end)
