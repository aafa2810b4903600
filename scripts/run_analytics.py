"""Compute analytics, checkbook and title streaks for an occurrence file."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from routine_engine.adapters import csv_adapter, json_adapter
from routine_engine.analytics import analyze_owner
from routine_engine.checkbook import build_checkbook
from routine_engine.config import load_config
from routine_engine.periods import PERIODS
from routine_engine.schema import as_naive_utc, utc_now
from routine_engine.store import MemoryStore
from routine_engine.streaks import title_streaks


def _load_occurrences(path: Path):
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return csv_adapter.parse(str(path))
    if suffix == ".json":
        return json_adapter.parse(str(path))
    raise ValueError("Unsupported input format, expected .csv or .json")


def main() -> None:
    parser = argparse.ArgumentParser(description="Run routine-engine analytics over a snapshot file")
    parser.add_argument("--data", required=True, help="Path to CSV/JSON occurrences file")
    parser.add_argument("--owner", required=True, help="Owner id to analyze")
    parser.add_argument("--period", default="overall", choices=PERIODS)
    parser.add_argument("--now", help="Reference time (ISO format), defaults to the current time")
    parser.add_argument("--checkbook-weeks", type=int, default=0, help="Also build a checkbook grid of N weeks")
    parser.add_argument("--config", default="routine.toml", help="Path to routine.toml")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    config, warning = load_config(Path(args.config))
    if warning:
        logging.getLogger(__name__).warning(warning)

    now = as_naive_utc(datetime.fromisoformat(args.now)) if args.now else utc_now()
    occurrences = _load_occurrences(Path(args.data))
    store = MemoryStore(occurrences)

    report = {"analytics": analyze_owner(store, args.owner, args.period, now, config.analytics)}
    owned = store.list_occurrences(args.owner)
    report["title_streaks"] = {
        title: {"current": streak.current, "best": streak.best}
        for title, streak in title_streaks(owned, now.date()).items()
    }
    if args.checkbook_weeks > 0:
        report["checkbook"] = build_checkbook(owned, weeks=args.checkbook_weeks, today=now.date())

    print(json.dumps(report, indent=2))


if __name__ == "__main__":
    main()
