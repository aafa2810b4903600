"""Run the scheduled engine operations against a SQLite store."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from routine_engine.config import load_config
from routine_engine.reminders import Reminder
from routine_engine.scheduler import Scheduler, default_triggers
from routine_engine.sqlite_store import SQLiteStore

logger = logging.getLogger("routine_engine.cli")


def _log_reminder(reminder: Reminder) -> None:
    logger.info("reminder for %s: %s", reminder.owner_id, reminder.message)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run routine-engine scheduled triggers")
    parser.add_argument("--db", required=True, help="Path to the SQLite database")
    parser.add_argument("--config", default="routine.toml", help="Path to routine.toml")
    parser.add_argument("--once", action="store_true", help="Run every trigger once and exit")
    parser.add_argument("--trigger", help="Run a single trigger by name and exit")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config, warning = load_config(Path(args.config))
    if warning:
        logger.warning(warning)

    store = SQLiteStore(args.db)
    scheduler = Scheduler(default_triggers(store, _log_reminder, config.scheduler))

    if args.trigger:
        print(scheduler.run_trigger(args.trigger))
        return
    if args.once:
        for run in scheduler.run_due():
            print(run)
        return

    scheduler.start()
    try:
        while True:
            time.sleep(60)
    except KeyboardInterrupt:
        logger.info("stopping scheduler")
    finally:
        scheduler.stop(timeout=5)


if __name__ == "__main__":
    main()
