"""Completion counts for an occurrence snapshot."""

from __future__ import annotations

from routine_engine.schema import Occurrence


def completion_rate(completed: int, total: int) -> float:
    """Percentage of completed occurrences, unrounded."""

    return (completed / total) * 100.0 if total else 0.0


def compute_metrics(occurrences: list[Occurrence]) -> dict:
    """Compute total, completed and pending counts and the completion rate."""

    if not occurrences:
        return {
            "total": 0,
            "completed": 0,
            "pending": 0,
            "completion_rate": 0.0,
        }

    completed = sum(1 for occurrence in occurrences if occurrence.is_completed)
    total = len(occurrences)
    return {
        "total": total,
        "completed": completed,
        "pending": total - completed,
        "completion_rate": completion_rate(completed, total),
    }
