from datetime import date

import pytest

from routine_engine.periods import Window, resolve_period


def test_daily_and_weekly_windows():
    daily = resolve_period("daily", date(2024, 3, 15))
    assert daily.current == Window(date(2024, 3, 15), date(2024, 3, 15))
    assert daily.previous == Window(date(2024, 3, 14), date(2024, 3, 14))

    weekly = resolve_period("weekly", date(2024, 3, 15))
    assert weekly.current == Window(date(2024, 3, 9), date(2024, 3, 15))
    assert weekly.previous == Window(date(2024, 3, 2), date(2024, 3, 8))


def test_monthly_window_is_the_calendar_month():
    windows = resolve_period("monthly", date(2024, 3, 15))
    assert windows.current == Window(date(2024, 3, 1), date(2024, 3, 31))
    assert windows.previous == Window(date(2024, 2, 1), date(2024, 2, 29))


def test_overall_is_bounded_lookback_without_comparison():
    windows = resolve_period("overall", date(2024, 3, 15))
    assert windows.current.start == date(2019, 3, 15)
    assert windows.current.end is None
    assert windows.previous is None
    assert windows.current.contains(date(2030, 1, 1))
    assert not windows.current.contains(date(2019, 3, 14))


def test_unknown_period_rejected():
    with pytest.raises(ValueError):
        resolve_period("yearly", date(2024, 3, 15))
