"""Fixed-interval triggers for the engine's scheduled operations.

Each trigger runs on its own thread so a slow run never delays another
trigger. A trigger that is still running when its next interval comes up
is skipped for that tick; correctness under genuinely concurrent runs
(other processes, completion-triggered spawns) comes from every scheduled
mutation being idempotent.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from routine_engine.config import SchedulerConfig
from routine_engine.overdue import migrate_overdue
from routine_engine.recurrence import generate_recurring
from routine_engine.reminders import Notifier, emit_daily_digest, emit_reminders
from routine_engine.schema import utc_now
from routine_engine.store import RecordStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

TRIGGER_MIGRATE = "migrate_overdue"
TRIGGER_EXPAND = "expand_patterns"
TRIGGER_REMIND = "deadline_reminders"
TRIGGER_DIGEST = "daily_digest"


@dataclass
class Trigger:
    name: str
    interval: timedelta
    action: Callable[[datetime], Any]
    next_run: Optional[datetime] = None
    _running: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def try_acquire(self) -> bool:
        """Claim the trigger for one run; False while a previous run is still going."""

        return self._running.acquire(blocking=False)

    def release(self) -> None:
        self._running.release()


@dataclass(frozen=True)
class TriggerRun:
    name: str
    started_at: datetime
    skipped: bool = False
    result: Any = None
    error: Optional[str] = None


class Scheduler:
    """Runs triggers on independent intervals against an injectable clock."""

    def __init__(self, triggers: list[Trigger], clock: Clock = utc_now):
        names = [trigger.name for trigger in triggers]
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate trigger names in {names}")
        self._triggers = {trigger.name: trigger for trigger in triggers}
        self._clock = clock
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    @property
    def triggers(self) -> list[str]:
        return list(self._triggers)

    def run_trigger(self, name: str, now: Optional[datetime] = None) -> TriggerRun:
        """Run one trigger now, unless a previous run of it is still going."""

        trigger = self._triggers[name]
        now = now or self._clock()
        if not trigger.try_acquire():
            logger.info("trigger %s still running, skipping this tick", name)
            return TriggerRun(name=name, started_at=now, skipped=True)
        try:
            result = trigger.action(now)
        except Exception as exc:  # noqa: BLE001
            logger.error("trigger %s failed", name, exc_info=True)
            return TriggerRun(name=name, started_at=now, error=str(exc))
        finally:
            trigger.next_run = now + trigger.interval
            trigger.release()
        return TriggerRun(name=name, started_at=now, result=result)

    def run_due(self, now: Optional[datetime] = None) -> list[TriggerRun]:
        """Run every trigger whose next run time has come, in registration order."""

        now = now or self._clock()
        return [
            self.run_trigger(name, now)
            for name, trigger in self._triggers.items()
            if trigger.next_run is None or trigger.next_run <= now
        ]

    def _loop(self, trigger: Trigger) -> None:
        while not self._stop.is_set():
            now = self._clock()
            if trigger.next_run is None or trigger.next_run <= now:
                self.run_trigger(trigger.name, now)
            wait = (trigger.next_run - self._clock()).total_seconds() if trigger.next_run else 0
            self._stop.wait(timeout=max(1.0, wait))

    def start(self) -> None:
        if self._threads:
            return
        self._stop.clear()
        for trigger in self._triggers.values():
            thread = threading.Thread(target=self._loop, args=(trigger,), name=f"trigger-{trigger.name}", daemon=True)
            thread.start()
            self._threads.append(thread)
        logger.info("scheduler started with triggers %s", ", ".join(self._triggers))

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []


def default_triggers(store: RecordStore, notify: Notifier, config: Optional[SchedulerConfig] = None) -> list[Trigger]:
    config = config or SchedulerConfig()
    triggers = [
        Trigger(
            TRIGGER_MIGRATE,
            timedelta(hours=config.migrate_interval_hours),
            lambda now: migrate_overdue(store, now.date(), now),
        ),
        Trigger(
            TRIGGER_EXPAND,
            timedelta(hours=config.expansion_interval_hours),
            lambda now: generate_recurring(store, now.date(), now),
        ),
        Trigger(
            TRIGGER_REMIND,
            timedelta(hours=config.reminder_interval_hours),
            lambda now: emit_reminders(store, notify, now),
        ),
    ]
    if config.digest_enabled:
        triggers.append(
            Trigger(
                TRIGGER_DIGEST,
                timedelta(hours=config.digest_interval_hours),
                lambda now: emit_daily_digest(store, notify, now),
            )
        )
    return triggers
