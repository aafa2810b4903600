"""Core record schema for occurrences and recurrence patterns."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from typing import Optional

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUSES = (STATUS_PENDING, STATUS_COMPLETED)

PRIORITIES = ("urgent", "high", "medium", "low")
DEFAULT_PRIORITY = "medium"
DEFAULT_CATEGORY = "General"
UNCATEGORIZED = "Uncategorized"

PATTERN_DAILY = "daily"
PATTERN_WEEKLY = "weekly"
PATTERN_MONTHLY = "monthly"
PATTERN_CUSTOM = "custom"
PATTERN_TYPES = (PATTERN_DAILY, PATTERN_WEEKLY, PATTERN_MONTHLY, PATTERN_CUSTOM)
_PATTERN_ALIASES = {"custom-interval": PATTERN_CUSTOM, "custom_interval": PATTERN_CUSTOM}


class PatternConfigError(ValueError):
    """Raised when a recurrence pattern cannot be expanded."""


@dataclass
class Occurrence:
    """One dated instance of a task owned by a single owner."""

    owner_id: str
    title: str
    date: date
    occurrence_id: Optional[int] = None
    description: str = ""
    end_date: Optional[date] = None
    due_date: Optional[datetime] = None
    status: str = STATUS_PENDING
    completed_at: Optional[datetime] = None
    category: Optional[str] = DEFAULT_CATEGORY
    priority: Optional[str] = DEFAULT_PRIORITY
    estimated_minutes: Optional[int] = None
    actual_minutes: Optional[int] = None
    is_recurring: bool = False
    recurrence_pattern: Optional[str] = None
    recurrence_interval: Optional[int] = None
    pattern_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def key(self) -> tuple[str, str, date]:
        return (self.owner_id, self.title, self.date)

    @property
    def is_completed(self) -> bool:
        return self.status == STATUS_COMPLETED

    def with_status(self, status: str, now: datetime) -> "Occurrence":
        """Return a copy in ``status`` keeping ``completed_at`` set iff completed."""

        if status not in STATUSES:
            raise ValueError(f"invalid status '{status}'")
        if status == STATUS_COMPLETED:
            completed_at = self.completed_at if self.is_completed and self.completed_at else now
        else:
            completed_at = None
        return replace(self, status=status, completed_at=completed_at, updated_at=now)


@dataclass
class RecurrencePattern:
    """Declarative rule that materializes occurrences for one title."""

    owner_id: str
    title: str
    pattern_type: str
    start_date: date
    pattern_id: Optional[int] = None
    end_date: Optional[date] = None
    interval: Optional[int] = None
    last_generated_date: Optional[date] = None
    description: str = ""
    category: Optional[str] = DEFAULT_CATEGORY
    priority: Optional[str] = DEFAULT_PRIORITY
    estimated_minutes: Optional[int] = None
    is_active: bool = True


def normalize_pattern_type(value: Optional[str]) -> str:
    """Map a raw pattern type onto one of ``PATTERN_TYPES``."""

    cleaned = str(value or "").strip().lower()
    cleaned = _PATTERN_ALIASES.get(cleaned, cleaned)
    if cleaned not in PATTERN_TYPES:
        raise PatternConfigError(f"unknown recurrence pattern '{value}'")
    return cleaned


def normalize_category(category: Optional[str]) -> str:
    if category is None:
        return UNCATEGORIZED
    cleaned = str(category).strip()
    if not cleaned or cleaned.lower() in {"null", "none", "undefined"}:
        return UNCATEGORIZED
    return cleaned


def normalize_priority(priority: Optional[str]) -> str:
    cleaned = str(priority or "").strip().lower()
    return cleaned if cleaned in PRIORITIES else DEFAULT_PRIORITY


def as_minutes(value) -> Optional[int]:
    """Coerce an effort value to whole minutes, or ``None`` when unusable."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return int(number)


def as_date(value) -> date:
    """Discard the time of day from a date or datetime."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"expected date or datetime, got {type(value).__name__}")


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are naive UTC; aware values are converted, naive ones kept."""

    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
