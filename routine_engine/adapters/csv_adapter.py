"""CSV adapter for occurrence snapshots."""

from __future__ import annotations

import csv

from routine_engine.adapters.records import parse_occurrence
from routine_engine.schema import Occurrence


def parse(file_path: str) -> list[Occurrence]:
    """Parse CSV file into a list of occurrences."""

    with open(file_path, newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        if not reader.fieldnames:
            return []

        occurrences: list[Occurrence] = []
        for row_number, row in enumerate(reader, start=2):
            occurrences.append(parse_occurrence(row, f"Row {row_number}"))
        return occurrences
