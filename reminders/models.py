"""
models.py
─────────
Shared Pydantic data models for the reminders API.
"""

from __future__ import annotations
from datetime import time
from enum import Enum
from typing import Annotated, List, Optional
from pydantic import BaseModel, BeforeValidator, Field
import uuid


class RepeatUnit(str, Enum):
    SECOND = "second"
    MINUTE = "minute"
    HOUR   = "hour"
    DAY    = "day"
    WEEK   = "week"

    @property
    def seconds(self) -> int:
        return _UNIT_SECONDS[self]

    @classmethod
    def _missing_(cls, value):
        # Accept short forms and plurals ("sec", "mins", "h", ...)
        if isinstance(value, str):
            key = value.strip().lower()
            key = _UNIT_ALIASES.get(key, key)
            if key.endswith("s") and key[:-1] in cls._value2member_map_:
                key = key[:-1]
            return cls._value2member_map_.get(key)
        return None


_UNIT_SECONDS = {
    RepeatUnit.SECOND: 1,
    RepeatUnit.MINUTE: 60,
    RepeatUnit.HOUR:   3600,
    RepeatUnit.DAY:    86400,
    RepeatUnit.WEEK:   604800,
}

_UNIT_ALIASES = {
    "s": "second", "sec": "second", "secs": "second",
    "m": "minute", "min": "minute", "mins": "minute",
    "h": "hour",   "hr": "hour",    "hrs": "hour",
    "d": "day",
    "w": "week",   "wk": "week",    "wks": "week",
}


def _coerce_unit(value):
    if isinstance(value, str):
        return RepeatUnit(value)    # ValueError becomes a validation error
    return value


Unit = Annotated[RepeatUnit, BeforeValidator(_coerce_unit)]


def _coerce_magnitude(value):
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


Magnitude = Annotated[str, BeforeValidator(_coerce_magnitude)]


class Weekday(str, Enum):
    SUN = "Sun"
    MON = "Mon"
    TUE = "Tue"
    WED = "Wed"
    THU = "Thu"
    FRI = "Fri"
    SAT = "Sat"


class Outcome(str, Enum):
    """Result of a persistence round-trip, surfaced instead of raising."""
    OK                = "ok"
    PERMISSION_DENIED = "permission_denied"
    DECODE_ERROR      = "decode_error"
    ENCODE_ERROR      = "encode_error"


class TaskItem(BaseModel):
    name: str
    is_completed: bool = False


class Reminder(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    start_time: time                       # date part is ignored
    end_time: Optional[time] = None
    repeat_every: Magnitude = "0"          # integer as text, "abc" -> 0
    repeat_unit: Unit = RepeatUnit.HOUR
    repeat_days: List[Weekday] = []        # empty = every day
    active: bool = True
    countdown: int = 0                     # seconds to next fire, scheduler-owned
    tasks: List[TaskItem] = []


class ReminderCreate(BaseModel):
    title: str
    start_time: time
    end_time: Optional[time] = None
    repeat_every: Magnitude = "0"
    repeat_unit: Unit = RepeatUnit.HOUR
    repeat_days: List[Weekday] = []
    tasks: List[TaskItem] = []


class ReminderUpdate(BaseModel):
    title: Optional[str] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    repeat_every: Optional[Magnitude] = None
    repeat_unit: Optional[Unit] = None
    repeat_days: Optional[List[Weekday]] = None


class ReminderView(BaseModel):
    id: str
    title: str
    countdown: str
    active: bool


class ToggleRequest(BaseModel):
    active: bool


class TaskCreate(BaseModel):
    name: str


class TaskUpdate(BaseModel):
    is_completed: bool


class PermissionUpdate(BaseModel):
    granted: bool
