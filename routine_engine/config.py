"""Engine configuration loaded from routine.toml."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path


def _as_float(value, *, default: float) -> float:
    try:
        return float(value)
    except Exception:  # noqa: BLE001
        return float(default)


def _as_int(value, *, default: int) -> int:
    try:
        return int(value)
    except Exception:  # noqa: BLE001
        return int(default)


def _as_bool(value, *, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "y", "on"}:
            return True
        if lowered in {"0", "false", "no", "n", "off"}:
            return False
    return bool(default)


@dataclass(frozen=True)
class SchedulerConfig:
    migrate_interval_hours: int = 24
    expansion_interval_hours: int = 24
    reminder_interval_hours: int = 6
    digest_interval_hours: int = 24
    digest_enabled: bool = True


@dataclass(frozen=True)
class AnalyticsConfig:
    overall_lookback_years: int = 5
    overall_record_cap: int = 10_000
    previous_record_cap: int = 5_000
    streak_lookback_years: int = 2
    streak_record_cap: int = 2_000
    decline_threshold: float = 10.0
    high_volume_per_day: float = 10.0


@dataclass(frozen=True)
class EngineConfig:
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)


def _hours(table: dict, key: str) -> int:
    return max(1, _as_int(table.get(key), default=getattr(SchedulerConfig, key)))


def _cap(table: dict, key: str) -> int:
    return max(1, _as_int(table.get(key), default=getattr(AnalyticsConfig, key)))


def load_config(path: Path) -> tuple[EngineConfig, str]:
    """Load engine config from a TOML file.

    Returns (config, warning). Warning is empty on success; a missing file
    gives the defaults.
    """

    if not path.exists():
        return EngineConfig(), ""

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        return EngineConfig(), f"{path.name} parse failed: {exc}"

    scheduler = data.get("scheduler") if isinstance(data.get("scheduler"), dict) else {}
    analytics = data.get("analytics") if isinstance(data.get("analytics"), dict) else {}

    cfg = EngineConfig(
        scheduler=SchedulerConfig(
            migrate_interval_hours=_hours(scheduler, "migrate_interval_hours"),
            expansion_interval_hours=_hours(scheduler, "expansion_interval_hours"),
            reminder_interval_hours=_hours(scheduler, "reminder_interval_hours"),
            digest_interval_hours=_hours(scheduler, "digest_interval_hours"),
            digest_enabled=_as_bool(scheduler.get("digest_enabled"), default=SchedulerConfig.digest_enabled),
        ),
        analytics=AnalyticsConfig(
            overall_lookback_years=_cap(analytics, "overall_lookback_years"),
            overall_record_cap=_cap(analytics, "overall_record_cap"),
            previous_record_cap=_cap(analytics, "previous_record_cap"),
            streak_lookback_years=_cap(analytics, "streak_lookback_years"),
            streak_record_cap=_cap(analytics, "streak_record_cap"),
            decline_threshold=max(
                0.0, _as_float(analytics.get("decline_threshold"), default=AnalyticsConfig.decline_threshold)
            ),
            high_volume_per_day=max(
                0.0, _as_float(analytics.get("high_volume_per_day"), default=AnalyticsConfig.high_volume_per_day)
            ),
        ),
    )
    return cfg, ""
