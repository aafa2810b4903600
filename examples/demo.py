"""Demo script for routine-engine."""

import json
import sys
from datetime import date, datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from routine_engine.analytics import analyze_owner
from routine_engine.checkbook import build_checkbook
from routine_engine.overdue import migrate_overdue
from routine_engine.recurrence import complete_occurrence, generate_recurring
from routine_engine.schema import RecurrencePattern
from routine_engine.store import MemoryStore


def main() -> None:
    now = datetime.fromisoformat("2024-03-15T18:00:00")
    store = MemoryStore(
        patterns=[
            RecurrencePattern("demo", "Morning run", "daily", date(2024, 3, 1), category="Health"),
            RecurrencePattern("demo", "Pay rent", "monthly", date(2024, 1, 31), priority="high"),
        ]
    )

    print("Generated:", generate_recurring(store, now.date(), now))
    for occurrence in store.list_occurrences("demo", date(2024, 3, 1), date(2024, 3, 12)):
        complete_occurrence(store, occurrence.occurrence_id, now)
    print("Migrated:", migrate_overdue(store, now.date(), now))

    print(json.dumps(analyze_owner(store, "demo", "monthly", now), indent=2))
    print(json.dumps(build_checkbook(store.list_occurrences("demo"), weeks=2, today=now.date()), indent=2))


if __name__ == "__main__":
    main()
