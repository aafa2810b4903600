"""Consecutive-day streak detection over sparse completion timelines."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable

from routine_engine.schema import Occurrence, as_date

_ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class StreakResult:
    current: int
    best: int


@dataclass(frozen=True)
class HabitStreak:
    habit_id: str
    current: int
    best: int
    total_completions: int
    completed_today: bool


def compute_streaks(dates: Iterable[date | datetime], today: date | datetime) -> StreakResult:
    """Return the current and best runs of consecutive calendar days.

    The current streak walks backward from ``today``; a miss on ``today``
    itself yields 0. Callers wanting the streak as of yesterday must leave
    today out of ``dates`` and pass yesterday.
    """

    unique = {as_date(value) for value in dates}
    if not unique:
        return StreakResult(current=0, best=0)

    current = 0
    cursor = as_date(today)
    while cursor in unique:
        current += 1
        cursor -= _ONE_DAY

    best = 0
    running = 0
    previous = None
    for day in sorted(unique, reverse=True):
        if previous is not None and day == previous - _ONE_DAY:
            running += 1
        else:
            running = 1
        best = max(best, running)
        previous = day

    return StreakResult(current=current, best=best)


def title_streaks(occurrences: Iterable[Occurrence], today: date) -> dict[str, StreakResult]:
    """Streaks per title, counting the dates on which that title was completed."""

    completed_dates: dict[str, set[date]] = defaultdict(set)
    for occurrence in occurrences:
        if occurrence.is_completed:
            completed_dates[occurrence.title].add(occurrence.date)
        else:
            completed_dates.setdefault(occurrence.title, set())
    return {title: compute_streaks(dates, today) for title, dates in sorted(completed_dates.items())}


def habit_streaks(completions: Iterable[tuple[str, date | datetime]], today: date) -> dict[str, HabitStreak]:
    """Streaks per habit from ``(habit_id, completion_date)`` pairs."""

    by_habit: dict[str, list[date]] = defaultdict(list)
    for habit_id, completed_on in completions:
        by_habit[str(habit_id)].append(as_date(completed_on))

    results = {}
    for habit_id, dates in sorted(by_habit.items()):
        streak = compute_streaks(dates, today)
        results[habit_id] = HabitStreak(
            habit_id=habit_id,
            current=streak.current,
            best=streak.best,
            total_completions=len(dates),
            completed_today=as_date(today) in dates,
        )
    return results


def perfect_days(occurrences: Iterable[Occurrence]) -> set[date]:
    """Dates with at least one occurrence where every occurrence is completed."""

    totals: dict[date, list[int]] = defaultdict(lambda: [0, 0])
    for occurrence in occurrences:
        tally = totals[occurrence.date]
        tally[0] += 1
        if occurrence.is_completed:
            tally[1] += 1
    return {day for day, (total, completed) in totals.items() if total and completed == total}
