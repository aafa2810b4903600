"""Analytics period windows."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

PERIOD_DAILY = "daily"
PERIOD_WEEKLY = "weekly"
PERIOD_MONTHLY = "monthly"
PERIOD_OVERALL = "overall"
PERIODS = (PERIOD_DAILY, PERIOD_WEEKLY, PERIOD_MONTHLY, PERIOD_OVERALL)


@dataclass(frozen=True)
class Window:
    """Inclusive date range; ``end`` is open-ended when ``None``."""

    start: date
    end: Optional[date]

    def contains(self, day: date) -> bool:
        return day >= self.start and (self.end is None or day <= self.end)


@dataclass(frozen=True)
class PeriodWindows:
    period: str
    current: Window
    previous: Optional[Window]


def resolve_period(period: str, today: date, overall_lookback_years: int = 5) -> PeriodWindows:
    """Current window for ``period`` and the equal-length window right before it.

    ``overall`` covers the last ``overall_lookback_years`` years with no
    comparison window.
    """

    cleaned = str(period or PERIOD_OVERALL).strip().lower()
    if cleaned == PERIOD_DAILY:
        yesterday = today - timedelta(days=1)
        return PeriodWindows(cleaned, Window(today, today), Window(yesterday, yesterday))
    if cleaned == PERIOD_WEEKLY:
        start = today - timedelta(days=6)
        previous_end = start - timedelta(days=1)
        return PeriodWindows(cleaned, Window(start, today), Window(previous_end - timedelta(days=6), previous_end))
    if cleaned == PERIOD_MONTHLY:
        start = today.replace(day=1)
        end = start + relativedelta(months=1) - timedelta(days=1)
        previous_start = start - relativedelta(months=1)
        return PeriodWindows(cleaned, Window(start, end), Window(previous_start, start - timedelta(days=1)))
    if cleaned == PERIOD_OVERALL:
        return PeriodWindows(cleaned, Window(today - relativedelta(years=overall_lookback_years), None), None)
    raise ValueError(f"unknown analytics period '{period}'")
