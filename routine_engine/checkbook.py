"""Title-by-date checkbook grid."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Optional, Sequence

from routine_engine.analytics import validate_snapshot
from routine_engine.breakdowns import sunday_index
from routine_engine.schema import Occurrence


def week_start_for(day: date) -> date:
    """The Sunday on or before ``day``."""

    return day - timedelta(days=sunday_index(day))


def build_checkbook(
    occurrences: Sequence[Occurrence],
    weeks: int = 2,
    start: Optional[date] = None,
    today: Optional[date] = None,
) -> dict:
    """Pivot occurrences into one row per title and one cell per day.

    A cell holds ``{"id", "status", "completed_at"}`` for the occurrence of
    that title on that day, or ``None``. Occurrences outside the span are
    ignored. ``start`` defaults to the week containing ``today``.
    """

    rows_in = validate_snapshot(occurrences)
    if start is None:
        if today is None:
            raise ValueError("either start or today is required")
        start = week_start_for(today)
    weeks = max(1, int(weeks))
    days = [start + timedelta(days=offset) for offset in range(weeks * 7)]
    end = days[-1]

    by_title: dict[str, dict[date, Occurrence]] = {}
    for occurrence in sorted(rows_in, key=lambda occ: (occ.title, occ.date, occ.occurrence_id or 0)):
        if not start <= occurrence.date <= end:
            continue
        by_title.setdefault(occurrence.title, {}).setdefault(occurrence.date, occurrence)

    tasks = {}
    for title, instances in by_title.items():
        first = next(iter(instances.values()))
        cells = {}
        for day in days:
            hit = instances.get(day)
            cells[day.isoformat()] = (
                {
                    "id": hit.occurrence_id,
                    "status": hit.status,
                    "completed_at": hit.completed_at.isoformat() if hit.completed_at else None,
                }
                if hit is not None
                else None
            )
        tasks[title] = {"title": title, "description": first.description or "", "days": cells}

    return {
        "week_start": start.isoformat(),
        "week_end": end.isoformat(),
        "weeks_count": weeks,
        "days": [
            {"date": day.isoformat(), "day_name": day.strftime("%a"), "label": f"{day.strftime('%b')} {day.day}"}
            for day in days
        ],
        "tasks": tasks,
    }
