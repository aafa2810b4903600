from datetime import date, datetime

import pytest

from routine_engine.overdue import migrate_overdue
from routine_engine.recurrence import complete_occurrence, generate_recurring
from routine_engine.schema import Occurrence, RecurrencePattern
from routine_engine.sqlite_store import SQLiteStore
from routine_engine.store import DuplicateOccurrenceError, StoreError

NOW = datetime.fromisoformat("2024-01-05T01:00:00")


@pytest.fixture
def store(tmp_path):
    return SQLiteStore(str(tmp_path / "routine.db"))


def test_create_if_absent_is_idempotent(store):
    occurrence = Occurrence(
        "u1",
        "Read",
        date(2024, 1, 1),
        due_date=datetime.fromisoformat("2024-01-01T20:00:00"),
        estimated_minutes=30,
        is_recurring=True,
        recurrence_pattern="daily",
    )
    first, created = store.create_if_absent(occurrence)
    again, created_again = store.create_if_absent(occurrence)

    assert (created, created_again) == (True, False)
    assert first.occurrence_id == again.occurrence_id
    assert first.due_date == datetime.fromisoformat("2024-01-01T20:00:00")
    assert first.is_recurring is True
    assert store.get_occurrence(first.occurrence_id).estimated_minutes == 30


def test_insert_batch_counts_new_rows(store):
    store.create_if_absent(Occurrence("u1", "Read", date(2024, 1, 2)))
    created = store.insert_batch([Occurrence("u1", "Read", date(2024, 1, d)) for d in range(1, 5)])
    assert created == 3
    assert store.existing_dates("u1", "Read", date(2024, 1, 1), date(2024, 1, 31)) == {
        date(2024, 1, d) for d in range(1, 5)
    }


def test_reschedule_onto_existing_key_raises(store):
    stale, _ = store.create_if_absent(Occurrence("u1", "Walk", date(2024, 1, 1)))
    store.create_if_absent(Occurrence("u1", "Walk", date(2024, 1, 5)))

    with pytest.raises(DuplicateOccurrenceError):
        store.reschedule(stale.occurrence_id, date(2024, 1, 5), NOW)
    assert store.get_occurrence(stale.occurrence_id).date == date(2024, 1, 1)


def test_checkpoint_never_moves_backwards(store):
    pattern = store.add_pattern(RecurrencePattern("u1", "Walk", "daily", date(2024, 1, 1)))
    assert store.advance_checkpoint(pattern.pattern_id, date(2024, 1, 5)) == date(2024, 1, 5)
    assert store.advance_checkpoint(pattern.pattern_id, date(2024, 1, 3)) == date(2024, 1, 5)
    assert store.get_pattern(pattern.pattern_id).last_generated_date == date(2024, 1, 5)


def test_list_occurrences_newest_first_with_limit(store):
    store.insert_batch([Occurrence("u1", "Read", date(2024, 1, d)) for d in range(1, 6)])
    store.insert_batch([Occurrence("u2", "Read", date(2024, 1, 3))])
    rows = store.list_occurrences("u1", date(2024, 1, 2), None, limit=2, newest_first=True)
    assert [row.date for row in rows] == [date(2024, 1, 5), date(2024, 1, 4)]


def test_reminder_keys_recorded_once(store):
    assert store.record_reminder("digest:u1:2024-01-05") is True
    assert store.record_reminder("digest:u1:2024-01-05") is False


def test_generation_is_idempotent_against_sqlite(store):
    store.add_pattern(RecurrencePattern("u1", "Journal", "daily", date(2024, 1, 1)))

    assert generate_recurring(store, date(2024, 1, 5), NOW).created == 5
    assert generate_recurring(store, date(2024, 1, 5), NOW).created == 0
    assert len(store.list_occurrences("u1")) == 5


def test_overdue_query_uses_due_date(store):
    store.create_if_absent(
        Occurrence("u1", "Taxes", date(2024, 1, 1), due_date=datetime.fromisoformat("2024-01-02T12:00:00"))
    )
    store.create_if_absent(
        Occurrence("u1", "Later", date(2024, 1, 1), due_date=datetime.fromisoformat("2024-01-05T12:00:00"))
    )
    assert [occ.title for occ in store.list_overdue_pending(date(2024, 1, 5))] == ["Taxes"]


def test_completion_keeps_date_moved_by_concurrent_migration(tmp_path):
    class MigratingStore(SQLiteStore):
        """Runs the overdue migrator between completion's read and write."""

        migrated = False

        def get_occurrence(self, occurrence_id):
            row = super().get_occurrence(occurrence_id)
            if not self.migrated:
                self.migrated = True
                migrate_overdue(self, date(2024, 3, 10), datetime.fromisoformat("2024-03-10T00:05:00"))
            return row

    store = MigratingStore(str(tmp_path / "routine.db"))
    stale, _ = store.create_if_absent(
        Occurrence("u1", "Taxes", date(2024, 3, 1), due_date=datetime.fromisoformat("2024-03-05T12:00:00"))
    )
    done_at = datetime.fromisoformat("2024-03-10T09:00:00")

    completed, _ = complete_occurrence(store, stale.occurrence_id, done_at)

    assert completed.date == date(2024, 3, 10)
    assert (completed.status, completed.completed_at) == ("completed", done_at)
    assert store.get_occurrence(stale.occurrence_id).date == date(2024, 3, 10)


def test_completed_occurrence_is_not_rescheduled(store):
    stale, _ = store.create_if_absent(
        Occurrence("u1", "Taxes", date(2024, 3, 1), due_date=datetime.fromisoformat("2024-03-05T12:00:00"))
    )
    store.set_status(stale.occurrence_id, "completed", NOW)

    assert store.reschedule(stale.occurrence_id, date(2024, 3, 10), NOW) is False
    row = store.get_occurrence(stale.occurrence_id)
    assert (row.date, row.status, row.completed_at) == (date(2024, 3, 1), "completed", NOW)


def test_set_status_keeps_first_completion_time(store):
    row, _ = store.create_if_absent(Occurrence("u1", "Read", date(2024, 1, 1)))
    later = datetime.fromisoformat("2024-01-06T08:00:00")

    store.set_status(row.occurrence_id, "completed", NOW)
    again = store.set_status(row.occurrence_id, "completed", later)
    assert again.completed_at == NOW
    assert again.updated_at == later

    reopened = store.set_status(row.occurrence_id, "pending", later)
    assert (reopened.status, reopened.completed_at) == ("pending", None)

    with pytest.raises(StoreError):
        store.set_status(999, "completed", NOW)
