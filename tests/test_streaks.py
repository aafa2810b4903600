from datetime import date, datetime

from routine_engine.schema import Occurrence
from routine_engine.streaks import compute_streaks, habit_streaks, perfect_days, title_streaks


def test_consecutive_days_ending_today():
    dates = {date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)}
    result = compute_streaks(dates, date(2024, 1, 3))
    assert (result.current, result.best) == (3, 3)


def test_gap_before_today_breaks_current_streak():
    dates = {date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)}
    result = compute_streaks(dates, date(2024, 1, 5))
    assert (result.current, result.best) == (0, 3)


def test_empty_set():
    result = compute_streaks(set(), date(2024, 1, 5))
    assert (result.current, result.best) == (0, 0)


def test_single_date():
    assert compute_streaks({date(2024, 1, 5)}, date(2024, 1, 5)) == compute_streaks([date(2024, 1, 5)], date(2024, 1, 5))
    assert compute_streaks({date(2024, 1, 5)}, date(2024, 1, 5)).current == 1
    result = compute_streaks({date(2024, 1, 4)}, date(2024, 1, 5))
    assert (result.current, result.best) == (0, 1)


def test_time_of_day_and_duplicates_are_ignored():
    stamps = [
        datetime.fromisoformat("2024-02-28T08:00:00"),
        datetime.fromisoformat("2024-02-28T21:00:00"),
        datetime.fromisoformat("2024-02-29T07:30:00"),
        datetime.fromisoformat("2024-03-01T23:59:00"),
    ]
    result = compute_streaks(stamps, datetime.fromisoformat("2024-03-01T12:00:00"))
    assert (result.current, result.best) == (3, 3)


def test_best_streak_picks_longest_run():
    dates = [date(2024, 1, d) for d in (1, 2, 3, 4, 10, 11, 20)]
    result = compute_streaks(dates, date(2024, 1, 11))
    assert (result.current, result.best) == (2, 4)


def test_title_streaks_count_only_completed_dates():
    occurrences = [
        Occurrence("u1", "Read", date(2024, 1, 1), status="completed"),
        Occurrence("u1", "Read", date(2024, 1, 2), status="completed"),
        Occurrence("u1", "Read", date(2024, 1, 3)),
        Occurrence("u1", "Stretch", date(2024, 1, 3)),
    ]
    streaks = title_streaks(occurrences, date(2024, 1, 2))
    assert (streaks["Read"].current, streaks["Read"].best) == (2, 2)
    assert (streaks["Stretch"].current, streaks["Stretch"].best) == (0, 0)


def test_habit_streaks_group_by_habit():
    completions = [
        ("h1", date(2024, 1, 1)),
        ("h1", date(2024, 1, 2)),
        ("h2", datetime.fromisoformat("2024-01-02T09:00:00")),
    ]
    streaks = habit_streaks(completions, date(2024, 1, 2))
    assert streaks["h1"].current == 2
    assert streaks["h1"].total_completions == 2
    assert streaks["h2"].completed_today is True
    assert streaks["h2"].best == 1


def test_perfect_days_require_every_occurrence_completed():
    occurrences = [
        Occurrence("u1", "A", date(2024, 1, 1), status="completed"),
        Occurrence("u1", "B", date(2024, 1, 1), status="completed"),
        Occurrence("u1", "A", date(2024, 1, 2), status="completed"),
        Occurrence("u1", "B", date(2024, 1, 2)),
    ]
    assert perfect_days(occurrences) == {date(2024, 1, 1)}
