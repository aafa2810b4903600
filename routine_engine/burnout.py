"""Burnout indicators and score."""

from __future__ import annotations

from datetime import datetime

from routine_engine.schema import STATUS_PENDING, Occurrence, normalize_priority

OVERDUE_WEIGHT = 2
URGENT_WEIGHT = 3
DECLINE_WEIGHT = 5
HIGH_VOLUME_WEIGHT = 2


def burnout_level(score: int) -> str:
    if score < 5:
        return "low"
    if score < 10:
        return "medium"
    return "high"


def recommendations(level: str, indicators: dict, high_volume_per_day: float = 10.0) -> list[str]:
    """Fixed advice list selected by which indicators fired."""

    advice = []
    if level == "high":
        advice.append("Consider reducing task load and focusing on high-priority items only")
        advice.append("Take breaks between tasks to maintain productivity")
    if indicators["overdue_tasks"] > 5:
        advice.append(
            f"You have {indicators['overdue_tasks']} overdue tasks. Consider rescheduling or delegating some tasks."
        )
    if indicators["urgent_pending"] > 3:
        advice.append("Multiple urgent tasks pending. Prioritize and tackle them one at a time.")
    if indicators["completion_rate_decline"]:
        advice.append("Completion rate has declined. Review your task planning and time estimates.")
    if indicators["avg_tasks_per_day"] > high_volume_per_day:
        advice.append("High daily task count detected. Consider breaking tasks into smaller subtasks.")
    if not advice:
        advice.append("Great job maintaining a healthy workload!")
    return advice


def assess_burnout(
    occurrences: list[Occurrence],
    now: datetime,
    completion_rate_change: float,
    avg_tasks_per_day: float,
    decline_threshold: float = 10.0,
    high_volume_per_day: float = 10.0,
) -> dict:
    indicators = {
        "overdue_tasks": sum(
            1
            for occurrence in occurrences
            if occurrence.status == STATUS_PENDING and occurrence.due_date is not None and occurrence.due_date < now
        ),
        "urgent_pending": sum(
            1 for occurrence in occurrences if occurrence.status == STATUS_PENDING and normalize_priority(occurrence.priority) == "urgent"
        ),
        "completion_rate_decline": completion_rate_change < -decline_threshold,
        "avg_tasks_per_day": avg_tasks_per_day,
    }
    score = (
        indicators["overdue_tasks"] * OVERDUE_WEIGHT
        + indicators["urgent_pending"] * URGENT_WEIGHT
        + (DECLINE_WEIGHT if indicators["completion_rate_decline"] else 0)
        + (HIGH_VOLUME_WEIGHT if avg_tasks_per_day > high_volume_per_day else 0)
    )
    level = burnout_level(score)
    return {
        **indicators,
        "burnout_score": score,
        "burnout_level": level,
        "recommendations": recommendations(level, indicators, high_volume_per_day),
    }
