"""Period-over-period comparison."""

from __future__ import annotations


def compare(previous_metrics: dict, current_metrics: dict) -> dict:
    """Deltas of the current period against the previous one.

    Rates are percentage points; ``previous_period`` echoes the comparison
    window's metrics rounded for display.
    """

    previous_rate = previous_metrics.get("completion_rate", 0.0)
    current_rate = current_metrics.get("completion_rate", 0.0)
    rate_change = current_rate - previous_rate

    return {
        "completion_rate_change": rate_change,
        "tasks_change": current_metrics.get("total", 0) - previous_metrics.get("total", 0),
        "previous_period": {
            "total": previous_metrics.get("total", 0),
            "completed": previous_metrics.get("completed", 0),
            "completion_rate": round(previous_rate, 2),
        },
    }
