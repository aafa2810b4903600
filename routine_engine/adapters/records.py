"""Field parsing shared by the file adapters."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from routine_engine.schema import (
    DEFAULT_CATEGORY,
    DEFAULT_PRIORITY,
    STATUS_COMPLETED,
    STATUS_PENDING,
    STATUSES,
    Occurrence,
    RecurrencePattern,
    as_minutes,
    as_naive_utc,
)

_REQUIRED_OCCURRENCE_FIELDS = ("owner_id", "title", "date")
_REQUIRED_PATTERN_FIELDS = ("owner_id", "title", "pattern_type", "start_date")
_TRUE_VALUES = {"1", "true", "yes", "y"}


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _parse_date(value, label: str, field: str) -> Optional[date]:
    if _blank(value):
        return None
    try:
        return datetime.fromisoformat(str(value).strip()).date()
    except ValueError as exc:
        raise ValueError(f"{label}: malformed {field}") from exc


def _parse_datetime(value, label: str, field: str) -> Optional[datetime]:
    if _blank(value):
        return None
    try:
        return as_naive_utc(datetime.fromisoformat(str(value).strip()))
    except ValueError as exc:
        raise ValueError(f"{label}: malformed {field}") from exc


def _parse_id(value) -> Optional[int]:
    return None if _blank(value) else as_minutes(value)


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in _TRUE_VALUES


def _text(value, default: Optional[str] = None) -> Optional[str]:
    return default if _blank(value) else str(value).strip()


def parse_occurrence(item: dict, label: str) -> Occurrence:
    """Build an occurrence from a flat record; ``label`` prefixes error messages."""

    missing = [field for field in _REQUIRED_OCCURRENCE_FIELDS if _blank(item.get(field))]
    if missing:
        raise ValueError(f"{label}: missing required fields {missing}")

    status = str(item.get("status") or STATUS_PENDING).strip().lower()
    if status not in STATUSES:
        raise ValueError(f"{label}: invalid status '{status}'")

    completed_at = _parse_datetime(item.get("completed_at"), label, "completed_at")
    if status != STATUS_COMPLETED:
        completed_at = None

    return Occurrence(
        occurrence_id=_parse_id(item.get("id")),
        owner_id=str(item["owner_id"]).strip(),
        title=str(item["title"]).strip(),
        date=_parse_date(item["date"], label, "date"),
        description=_text(item.get("description"), ""),
        end_date=_parse_date(item.get("end_date"), label, "end_date"),
        due_date=_parse_datetime(item.get("due_date"), label, "due_date"),
        status=status,
        completed_at=completed_at,
        category=_text(item.get("category"), DEFAULT_CATEGORY),
        priority=_text(item.get("priority"), DEFAULT_PRIORITY),
        estimated_minutes=as_minutes(item.get("estimated_minutes")),
        actual_minutes=as_minutes(item.get("actual_minutes")),
        is_recurring=_parse_bool(item.get("is_recurring")),
        recurrence_pattern=_text(item.get("recurrence_pattern")),
        recurrence_interval=as_minutes(item.get("recurrence_interval")),
        pattern_id=_parse_id(item.get("pattern_id")),
        created_at=_parse_datetime(item.get("created_at"), label, "created_at"),
        updated_at=_parse_datetime(item.get("updated_at"), label, "updated_at"),
    )


def parse_pattern(item: dict, label: str) -> RecurrencePattern:
    missing = [field for field in _REQUIRED_PATTERN_FIELDS if _blank(item.get(field))]
    if missing:
        raise ValueError(f"{label}: missing required fields {missing}")

    return RecurrencePattern(
        pattern_id=_parse_id(item.get("id")),
        owner_id=str(item["owner_id"]).strip(),
        title=str(item["title"]).strip(),
        pattern_type=str(item["pattern_type"]).strip(),
        start_date=_parse_date(item["start_date"], label, "start_date"),
        end_date=_parse_date(item.get("end_date"), label, "end_date"),
        interval=as_minutes(item.get("interval")),
        last_generated_date=_parse_date(item.get("last_generated_date"), label, "last_generated_date"),
        description=_text(item.get("description"), ""),
        category=_text(item.get("category"), DEFAULT_CATEGORY),
        priority=_text(item.get("priority"), DEFAULT_PRIORITY),
        estimated_minutes=as_minutes(item.get("estimated_minutes")),
        is_active=True if item.get("is_active") is None else _parse_bool(item.get("is_active")),
    )
