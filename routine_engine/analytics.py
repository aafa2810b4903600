"""Productivity analytics over a bounded occurrence snapshot.

``build_analytics`` is a pure function of its inputs: the same snapshot,
comparison snapshot and ``now`` always give the same payload.
``analyze_owner`` reads the bounded snapshots from a record store and hands
them to it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from dateutil.relativedelta import relativedelta

from routine_engine.breakdowns import (
    average_per_active_day,
    category_breakdown,
    completion_heatmap,
    daily_breakdown,
    most_productive_day,
    priority_breakdown,
    time_tracking,
    weekly_tasks,
)
from routine_engine.burnout import assess_burnout
from routine_engine.config import AnalyticsConfig
from routine_engine.evaluator import compare
from routine_engine.metrics import compute_metrics
from routine_engine.periods import PERIOD_OVERALL, PERIOD_WEEKLY, resolve_period
from routine_engine.schema import Occurrence, as_naive_utc
from routine_engine.store import RecordStore
from routine_engine.streaks import compute_streaks, perfect_days


class SnapshotError(ValueError):
    """Raised for a snapshot that is not a sequence of occurrences."""


def validate_snapshot(snapshot, name: str = "snapshot") -> list[Occurrence]:
    if not isinstance(snapshot, (list, tuple)):
        raise SnapshotError(f"{name} must be a list of occurrences, got {type(snapshot).__name__}")
    for index, item in enumerate(snapshot):
        if not isinstance(item, Occurrence):
            raise SnapshotError(f"{name}[{index}] is {type(item).__name__}, expected Occurrence")
    return list(snapshot)


def build_analytics(
    occurrences: Sequence[Occurrence],
    now: datetime,
    previous: Optional[Sequence[Occurrence]] = None,
    period: str = PERIOD_OVERALL,
    streak_history: Optional[Sequence[Occurrence]] = None,
    config: Optional[AnalyticsConfig] = None,
    truncated: bool = False,
) -> dict:
    """Aggregate one owner's snapshot into the analytics payload.

    ``previous`` is the equal-length window right before the current one
    (empty for ``overall``). ``streak_history`` feeds the perfect-day streak
    and defaults to the current snapshot.
    """

    config = config or AnalyticsConfig()
    now = as_naive_utc(now)
    current = validate_snapshot(occurrences)
    before = validate_snapshot(previous, "previous") if previous is not None else []
    history = validate_snapshot(streak_history, "streak_history") if streak_history is not None else current

    metrics = compute_metrics(current)
    comparison = compare(compute_metrics(before), metrics)
    streak = compute_streaks(perfect_days(history), now.date())
    avg_per_day = average_per_active_day(current)

    burnout = assess_burnout(
        current,
        now,
        completion_rate_change=comparison["completion_rate_change"],
        avg_tasks_per_day=avg_per_day,
        decline_threshold=config.decline_threshold,
        high_volume_per_day=config.high_volume_per_day,
    )

    return {
        "period": period,
        "total_tasks": metrics["total"],
        "completed_tasks": metrics["completed"],
        "pending_tasks": metrics["pending"],
        "completion_rate": round(metrics["completion_rate"], 2),
        "current_streak": streak.current,
        "best_streak": streak.best,
        "avg_tasks_per_day": avg_per_day,
        "most_productive_day": most_productive_day(current),
        "completion_rate_change": round(comparison["completion_rate_change"], 2),
        "tasks_change": comparison["tasks_change"],
        "previous_period": comparison["previous_period"],
        "daily_data": daily_breakdown(current),
        "weekly_tasks": weekly_tasks(current) if period in (PERIOD_WEEKLY, PERIOD_OVERALL) else {},
        "category_breakdown": category_breakdown(current),
        "priority_stats": priority_breakdown(current),
        "heatmap": completion_heatmap(current),
        "time_stats": time_tracking(current),
        "burnout_analysis": burnout,
        "truncated": truncated,
    }


def analyze_owner(
    store: RecordStore,
    owner_id: str,
    period: str,
    now: datetime,
    config: Optional[AnalyticsConfig] = None,
) -> dict:
    """Fetch the bounded snapshots for ``period`` and aggregate them.

    ``overall`` is a bounded approximation: it only looks back
    ``overall_lookback_years`` and reads at most ``overall_record_cap``
    records, flagging ``truncated`` when the cap was hit.
    """

    config = config or AnalyticsConfig()
    now = as_naive_utc(now)
    today = now.date()
    windows = resolve_period(period, today, config.overall_lookback_years)

    cap = config.overall_record_cap if windows.period == PERIOD_OVERALL else None
    current = store.list_occurrences(
        owner_id,
        windows.current.start,
        windows.current.end,
        limit=cap + 1 if cap is not None else None,
    )
    truncated = cap is not None and len(current) > cap
    if truncated:
        current = current[:cap]

    previous = []
    if windows.previous is not None:
        previous = store.list_occurrences(
            owner_id,
            windows.previous.start,
            windows.previous.end,
            limit=config.previous_record_cap,
        )

    history = store.list_occurrences(
        owner_id,
        today - relativedelta(years=config.streak_lookback_years),
        today,
        limit=config.streak_record_cap,
        newest_first=True,
    )

    return build_analytics(
        current,
        now,
        previous=previous,
        period=windows.period,
        streak_history=history,
        config=config,
        truncated=truncated,
    )
