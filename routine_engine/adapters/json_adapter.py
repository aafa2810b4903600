"""JSON adapter for occurrence and pattern snapshots."""

from __future__ import annotations

import json

from routine_engine.adapters.records import parse_occurrence, parse_pattern
from routine_engine.schema import Occurrence, RecurrencePattern


def _load_list(file_path: str) -> list:
    with open(file_path, encoding="utf-8") as handle:
        payload = json.load(handle)

    if not isinstance(payload, list):
        raise ValueError("JSON payload must be a list of objects")
    return payload


def _check_item(item, index: int) -> dict:
    if not isinstance(item, dict):
        raise ValueError(f"Item {index}: expected an object")
    return item


def parse(file_path: str) -> list[Occurrence]:
    """Parse JSON file into occurrences."""

    return [
        parse_occurrence(_check_item(item, i), f"Item {i}") for i, item in enumerate(_load_list(file_path), start=1)
    ]


def parse_patterns(file_path: str) -> list[RecurrencePattern]:
    """Parse JSON file into recurrence patterns."""

    return [parse_pattern(_check_item(item, i), f"Item {i}") for i, item in enumerate(_load_list(file_path), start=1)]
