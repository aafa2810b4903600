from datetime import date, datetime

from routine_engine.overdue import migrate_overdue
from routine_engine.schema import Occurrence
from routine_engine.store import MemoryStore, StoreError

TODAY = date(2024, 3, 10)
NOW = datetime.fromisoformat("2024-03-10T00:05:00")


def sample_store():
    return MemoryStore(
        occurrences=[
            Occurrence("u1", "Taxes", date(2024, 3, 1), due_date=datetime.fromisoformat("2024-03-05T12:00:00")),
            Occurrence("u1", "Call mom", date(2024, 3, 8), due_date=datetime.fromisoformat("2024-03-09T09:00:00")),
            Occurrence("u1", "No deadline", date(2024, 3, 1)),
            Occurrence("u1", "Due later", date(2024, 3, 1), due_date=datetime.fromisoformat("2024-03-12T09:00:00")),
            Occurrence("u1", "Due today", date(2024, 3, 1), due_date=datetime.fromisoformat("2024-03-10T09:00:00")),
            Occurrence(
                "u2",
                "Done",
                date(2024, 3, 1),
                due_date=datetime.fromisoformat("2024-03-02T09:00:00"),
                status="completed",
                completed_at=datetime.fromisoformat("2024-03-01T10:00:00"),
            ),
        ]
    )


def test_moves_only_stale_pending_occurrences():
    store = sample_store()
    report = migrate_overdue(store, TODAY, NOW)

    assert (report.candidates, report.moved, report.failed) == (2, 2, 0)
    moved = {occ.title: occ for occ in store.list_occurrences("u1")}
    assert moved["Taxes"].date == TODAY
    assert moved["Call mom"].date == TODAY
    assert moved["Taxes"].due_date == datetime.fromisoformat("2024-03-05T12:00:00")
    assert moved["Taxes"].status == "pending"
    assert moved["No deadline"].date == date(2024, 3, 1)
    assert moved["Due later"].date == date(2024, 3, 1)
    assert moved["Due today"].date == date(2024, 3, 1)
    assert store.list_occurrences("u2")[0].date == date(2024, 3, 1)


def test_second_run_is_a_no_op():
    store = sample_store()
    migrate_overdue(store, TODAY, NOW)
    snapshot = store.list_occurrences("u1")

    second = migrate_overdue(store, TODAY, NOW)

    assert (second.candidates, second.moved) == (0, 0)
    assert store.list_occurrences("u1") == snapshot


def test_collision_with_todays_instance_is_left_in_place():
    store = MemoryStore(
        occurrences=[
            Occurrence("u1", "Walk", date(2024, 3, 9), due_date=datetime.fromisoformat("2024-03-09T20:00:00")),
            Occurrence("u1", "Walk", TODAY),
        ]
    )
    report = migrate_overdue(store, TODAY, NOW)
    assert (report.candidates, report.moved, report.collisions, report.failed) == (0, 0, 1, 0)
    assert [occ.date for occ in store.list_occurrences("u1")] == [date(2024, 3, 9), TODAY]

    again = migrate_overdue(store, TODAY, NOW)
    assert (again.candidates, again.moved) == (0, 0)


def test_one_failure_does_not_block_the_rest():
    class BrokenStore(MemoryStore):
        def reschedule(self, occurrence_id, new_date, now):
            if occurrence_id == 1:
                raise StoreError("row locked")
            return super().reschedule(occurrence_id, new_date, now)

    store = BrokenStore(occurrences=sample_store().list_occurrences("u1"))
    report = migrate_overdue(store, TODAY, NOW)
    assert (report.moved, report.failed) == (1, 1)


def test_occurrence_completed_after_listing_is_not_moved():
    class RacingStore(MemoryStore):
        def list_overdue_pending(self, today):
            rows = super().list_overdue_pending(today)
            self.set_status(rows[0].occurrence_id, "completed", NOW)
            return rows

    store = RacingStore(occurrences=sample_store().list_occurrences("u1"))
    report = migrate_overdue(store, TODAY, NOW)

    assert (report.candidates, report.moved, report.skipped) == (2, 1, 1)
    taxes = store.get_occurrence(1)
    assert taxes.date == date(2024, 3, 1)
    assert (taxes.status, taxes.completed_at) == ("completed", NOW)


def test_reschedule_leaves_completed_occurrence_alone():
    store = sample_store()
    store.set_status(1, "completed", NOW)

    assert store.reschedule(1, TODAY, NOW) is False
    taxes = store.get_occurrence(1)
    assert (taxes.date, taxes.status, taxes.completed_at) == (date(2024, 3, 1), "completed", NOW)
