"""
Timer state per task.

A timer is either stopped (a fixed number of accumulated seconds) or running
(a baseline plus the wall-clock time since `start_time`). Keeping the two as
separate types means the "which value is authoritative" rule lives in one
place: `seconds_at(now)`.

Only running timers are persisted, as the running-timers snapshot:

    {"<task id>": {"startTime": "<ISO-8601>", "elapsed": 120, "isRunning": true}}
"""

import logging
import math
from datetime import datetime
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from tasktime.domain.models import as_utc

logger = logging.getLogger(__name__)


class StoppedTimer(BaseModel):
    model_config = ConfigDict(frozen=True)

    elapsed: int = Field(default=0, ge=0)

    @property
    def is_running(self) -> bool:
        return False

    def seconds_at(self, now: datetime) -> int:
        return self.elapsed

    def start(self, now: datetime) -> "RunningTimer":
        return RunningTimer(elapsed=self.elapsed, start_time=now)


class RunningTimer(BaseModel):
    model_config = ConfigDict(frozen=True)

    elapsed: int = Field(default=0, ge=0)
    start_time: datetime

    @field_validator("start_time")
    @classmethod
    def _aware(cls, value):
        return as_utc(value)

    @property
    def is_running(self) -> bool:
        return True

    def seconds_at(self, now: datetime) -> int:
        # A clock that moved backwards never eats into the baseline
        delta = math.floor((now - self.start_time).total_seconds())
        return self.elapsed + max(delta, 0)

    def stop(self, now: datetime) -> StoppedTimer:
        return StoppedTimer(elapsed=self.seconds_at(now))


TimerState = Union[StoppedTimer, RunningTimer]


class TimerSnapshotEntry(BaseModel):
    """Wire shape of one running-timers snapshot entry"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    start_time: Optional[datetime] = None
    elapsed: int = Field(default=0, ge=0)
    is_running: bool = True


def snapshot_running(timers: Dict[str, TimerState]) -> Dict[str, dict]:
    """Serialize the running subset of `timers`"""
    snapshot = {}
    for task_id, timer in timers.items():
        if isinstance(timer, RunningTimer):
            entry = TimerSnapshotEntry(start_time=timer.start_time, elapsed=timer.elapsed)
            snapshot[task_id] = entry.model_dump(mode="json", by_alias=True)
    return snapshot


def restore_running(raw: Optional[dict]) -> Dict[str, RunningTimer]:
    """
    Parse a stored running-timers snapshot.

    Entries that are malformed, not running, or lack a start time are dropped.
    """
    restored: Dict[str, RunningTimer] = {}
    if not isinstance(raw, dict):
        return restored

    for task_id, data in raw.items():
        try:
            entry = TimerSnapshotEntry.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Dropping unreadable timer snapshot for task {task_id}: {e}")
            continue
        if not entry.is_running or entry.start_time is None:
            continue
        restored[str(task_id)] = RunningTimer(elapsed=entry.elapsed, start_time=entry.start_time)
    return restored
