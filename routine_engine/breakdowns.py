"""Per-dimension breakdowns of an occurrence snapshot."""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import date
from typing import Optional

import numpy as np

from routine_engine.metrics import completion_rate
from routine_engine.schema import PRIORITIES, Occurrence, as_minutes, normalize_category, normalize_priority

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def sunday_index(day: date) -> int:
    """Weekday index with 0=Sunday .. 6=Saturday."""

    return (day.weekday() + 1) % 7


def _tally(occurrences) -> dict:
    total = len(occurrences)
    completed = sum(1 for occurrence in occurrences if occurrence.is_completed)
    return {
        "total": total,
        "completed": completed,
        "pending": total - completed,
        "completion_rate": round(completion_rate(completed, total), 2),
    }


def daily_breakdown(occurrences: list[Occurrence]) -> list[dict]:
    by_date: dict[date, list[Occurrence]] = defaultdict(list)
    for occurrence in occurrences:
        by_date[occurrence.date].append(occurrence)
    return [{"date": day.isoformat(), **_tally(rows)} for day, rows in sorted(by_date.items())]


def category_breakdown(occurrences: list[Occurrence]) -> list[dict]:
    """Per-category tallies, largest first; ties keep alphabetical order."""

    by_category: dict[str, list[Occurrence]] = defaultdict(list)
    for occurrence in occurrences:
        by_category[normalize_category(occurrence.category)].append(occurrence)
    rows = [{"category": category, **_tally(items)} for category, items in sorted(by_category.items())]
    return sorted(rows, key=lambda row: row["total"], reverse=True)


def priority_breakdown(occurrences: list[Occurrence]) -> dict[str, dict]:
    by_priority: dict[str, list[Occurrence]] = {priority: [] for priority in PRIORITIES}
    for occurrence in occurrences:
        by_priority[normalize_priority(occurrence.priority)].append(occurrence)
    return {priority: _tally(items) for priority, items in by_priority.items()}


def completion_heatmap(occurrences: list[Occurrence]) -> dict[str, int]:
    """Completions keyed ``"<weekday>-<hour>"`` from each completion timestamp."""

    grid = np.zeros((7, 24), dtype=int)
    stamps = [occurrence.completed_at for occurrence in occurrences if occurrence.is_completed and occurrence.completed_at]
    if stamps:
        rows = np.array([sunday_index(stamp.date()) for stamp in stamps])
        cols = np.array([stamp.hour for stamp in stamps])
        np.add.at(grid, (rows, cols), 1)
    return {f"{row}-{col}": int(grid[row, col]) for row, col in zip(*np.nonzero(grid))}


def most_productive_day(occurrences: list[Occurrence]) -> Optional[str]:
    """Weekday with the most completions; the lowest index wins ties."""

    counts = np.zeros(7, dtype=int)
    for occurrence in occurrences:
        if occurrence.is_completed:
            counts[sunday_index(occurrence.date)] += 1
    if not counts.any():
        return None
    return DAY_NAMES[int(np.argmax(counts))]


def average_per_active_day(occurrences: list[Occurrence]) -> float:
    active_days = {occurrence.date for occurrence in occurrences}
    return round(len(occurrences) / len(active_days), 1) if active_days else 0.0


def _positive_minutes(value) -> Optional[int]:
    minutes = as_minutes(value)
    return minutes if minutes is not None and minutes > 0 else None


def time_tracking(occurrences: list[Occurrence]) -> dict:
    """Estimated vs actual effort over occurrences carrying usable values."""

    estimates = Counter()
    with_time = 0
    for occurrence in occurrences:
        estimated = _positive_minutes(occurrence.estimated_minutes)
        actual = _positive_minutes(occurrence.actual_minutes)
        if estimated is not None:
            estimates["estimated"] += estimated
            estimates["estimated_count"] += 1
        if actual is not None:
            estimates["actual"] += actual
            estimates["actual_count"] += 1
        if estimated is not None or actual is not None:
            with_time += 1

    total_estimated = estimates["estimated"]
    total_actual = estimates["actual"]
    efficiency = round(total_actual / total_estimated * 100, 2) if total_estimated else None
    return {
        "total_estimated": total_estimated,
        "total_actual": total_actual,
        "tasks_with_time": with_time,
        "avg_estimated": round(total_estimated / estimates["estimated_count"]) if estimates["estimated_count"] else 0,
        "avg_actual": round(total_actual / estimates["actual_count"]) if estimates["actual_count"] else 0,
        "time_efficiency": efficiency,
    }


def weekly_tasks(occurrences: list[Occurrence]) -> dict[str, list[dict]]:
    by_date: dict[str, list[dict]] = defaultdict(list)
    for occurrence in sorted(occurrences, key=lambda occ: (occ.date, occ.occurrence_id or 0)):
        by_date[occurrence.date.isoformat()].append(
            {
                "id": occurrence.occurrence_id,
                "title": occurrence.title,
                "description": occurrence.description,
                "status": occurrence.status,
                "created_at": occurrence.created_at.isoformat() if occurrence.created_at else None,
            }
        )
    return dict(by_date)
