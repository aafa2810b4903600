from datetime import date, datetime

from routine_engine.reminders import daily_digest, deadline_reminders, due_message, emit_daily_digest, emit_reminders
from routine_engine.schema import Occurrence
from routine_engine.store import MemoryStore

NOW = datetime.fromisoformat("2024-03-10T10:00:00")


def at(stamp):
    return datetime.fromisoformat(stamp)


def sample_store():
    return MemoryStore(
        occurrences=[
            Occurrence("u1", "Soon", date(2024, 3, 10), due_date=at("2024-03-10T10:20:00")),
            Occurrence("u1", "Later", date(2024, 3, 10), due_date=at("2024-03-10T15:00:00")),
            Occurrence("u2", "Tomorrow", date(2024, 3, 11), due_date=at("2024-03-11T12:00:00")),
            Occurrence("u2", "Too far", date(2024, 3, 12), due_date=at("2024-03-12T09:00:00")),
            Occurrence("u2", "Already late", date(2024, 3, 10), due_date=at("2024-03-10T09:00:00")),
            Occurrence(
                "u1",
                "Done",
                date(2024, 3, 10),
                due_date=at("2024-03-10T11:00:00"),
                status="completed",
                completed_at=at("2024-03-10T08:00:00"),
            ),
        ]
    )


def test_due_message_tiers():
    assert due_message("Pay", at("2024-03-10T10:20:00"), NOW) == 'Task "Pay" is due very soon!'
    assert due_message("Pay", at("2024-03-10T15:00:00"), NOW) == 'Task "Pay" is due in 5 hours'
    assert due_message("Pay", at("2024-03-11T12:00:00"), NOW) == 'Task "Pay" is due tomorrow'


def test_deadline_reminders_window():
    reminders = deadline_reminders(sample_store().list_pending_due_between(NOW, at("2024-03-12T00:00:00")), NOW)
    assert [reminder.message for reminder in reminders] == [
        'Task "Soon" is due very soon!',
        'Task "Later" is due in 5 hours',
        'Task "Tomorrow" is due tomorrow',
    ]
    assert reminders[0].key == "deadline:1:2024-03-10T10:20:00"


def test_emit_reminders_sends_each_reminder_once():
    store = sample_store()
    sent = []

    first = emit_reminders(store, sent.append, NOW)
    second = emit_reminders(store, sent.append, NOW)

    assert (first.candidates, first.sent, first.duplicates) == (3, 3, 0)
    assert (second.sent, second.duplicates) == (0, 3)
    assert len(sent) == 3


def test_notifier_failure_is_counted_and_others_still_sent():
    store = sample_store()
    delivered = []

    def notify(reminder):
        if reminder.owner_id == "u2":
            raise ConnectionError("push gateway down")
        delivered.append(reminder)

    report = emit_reminders(store, notify, NOW)
    assert (report.sent, report.failed) == (2, 1)
    assert {reminder.owner_id for reminder in delivered} == {"u1"}


def test_daily_digest_counts_pending_per_owner():
    store = sample_store()
    reminders = daily_digest(store.list_pending_on(date(2024, 3, 10)), date(2024, 3, 10))
    assert [(r.owner_id, r.message) for r in reminders] == [
        ("u1", "You have 2 pending task(s) from today."),
        ("u2", "You have 1 pending task(s) from today."),
    ]
    assert reminders[0].key == "digest:u1:2024-03-10"

    sent = []
    assert emit_daily_digest(store, sent.append, NOW).sent == 2
    assert emit_daily_digest(store, sent.append, NOW).duplicates == 2
    assert len(sent) == 2
