"""Roll stale pending occurrences forward to today."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime

from routine_engine.store import DuplicateOccurrenceError, RecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MigrationReport:
    candidates: int
    moved: int
    collisions: int
    failed: int
    skipped: int = 0


def migrate_overdue(store: RecordStore, today: date, now: datetime) -> MigrationReport:
    """Move every pending occurrence whose date and due date are before ``today``.

    Status, due date and completion fields are left untouched. An occurrence
    whose title already has an occurrence today cannot move; it is reported
    under ``collisions`` and not counted as a candidate, so a repeated run
    reports no candidates. Occurrences completed after they were listed are
    reported under ``skipped``.
    """

    stale = store.list_overdue_pending(today)
    candidates = []
    collisions = 0
    for occurrence in stale:
        if today in store.existing_dates(occurrence.owner_id, occurrence.title, today, today):
            logger.debug(
                "occurrence %s stays put: '%s' already scheduled on %s", occurrence.occurrence_id, occurrence.title, today
            )
            collisions += 1
        else:
            candidates.append(occurrence)

    moved = failed = skipped = 0
    for occurrence in candidates:
        try:
            was_moved = store.reschedule(occurrence.occurrence_id, today, now)
        except DuplicateOccurrenceError:
            logger.info(
                "occurrence %s not moved: '%s' already scheduled on %s",
                occurrence.occurrence_id,
                occurrence.title,
                today,
            )
            collisions += 1
        except Exception:  # noqa: BLE001
            logger.warning("failed to move occurrence %s", occurrence.occurrence_id, exc_info=True)
            failed += 1
        else:
            if was_moved:
                moved += 1
            else:
                skipped += 1

    logger.info(
        "moved %d overdue occurrences to %s (%d collisions, %d skipped, %d failed)",
        moved,
        today,
        collisions,
        skipped,
        failed,
    )
    return MigrationReport(
        candidates=len(candidates),
        moved=moved,
        collisions=collisions,
        failed=failed,
        skipped=skipped,
    )
