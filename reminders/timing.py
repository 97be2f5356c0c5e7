"""
timing.py
─────────
Date arithmetic for reminder scheduling: rearm intervals, weekday gating,
today-relative start/end times and countdown formatting.
"""

import re
from datetime import datetime, time
from typing import Optional

from reminders.models import RepeatUnit, Weekday

# 1 = Sunday .. 7 = Saturday
_DAY_NUMBERS = {
    Weekday.SUN: 1, Weekday.MON: 2, Weekday.TUE: 3, Weekday.WED: 4,
    Weekday.THU: 5, Weekday.FRI: 6, Weekday.SAT: 7,
}

_DIGITS = re.compile(r"[0-9]+")

_MINUTE = 60
_HOUR   = 3600
_DAY    = 86400
_WEEK   = 604800


def parse_repeat_every(text) -> int:
    """Strict integer parse; anything that is not plain digits is 0."""
    if not isinstance(text, str) or not _DIGITS.fullmatch(text):
        return 0
    return int(text)


def interval_seconds(repeat_every, unit) -> int:
    try:
        unit = RepeatUnit(unit)
    except ValueError:
        return 0
    return parse_repeat_every(repeat_every) * unit.seconds


def weekday_number(dt: datetime) -> int:
    """1 = Sunday .. 7 = Saturday."""
    return (dt.weekday() + 1) % 7 + 1


def day_number(tag) -> int:
    return _DAY_NUMBERS[Weekday(tag)]


def combine_today(now: datetime, time_of_day: time) -> datetime:
    return datetime.combine(now.date(), time_of_day.replace(tzinfo=None), tzinfo=now.tzinfo)


def is_past_end(now: datetime, end_time: Optional[time]) -> bool:
    if end_time is None:
        return False
    return now > combine_today(now, end_time)


def initial_countdown(now: datetime, start_time: time, interval: int) -> int:
    """Seconds until today's start; once the start has passed, the interval."""
    start = combine_today(now, start_time)
    remaining = max(0, int((start - now).total_seconds()))
    if remaining == 0:
        return interval
    return remaining


def format_countdown(seconds: int) -> str:
    seconds = max(0, int(seconds))

    if seconds >= _WEEK:
        w, rest = divmod(seconds, _WEEK)
        d, rest = divmod(rest, _DAY)
        h, rest = divmod(rest, _HOUR)
        m, s    = divmod(rest, _MINUTE)
        return f"{w}w {d}d {h}h {m}m {s}s"

    if seconds >= _DAY:
        d, rest = divmod(seconds, _DAY)
        h, rest = divmod(rest, _HOUR)
        m, s    = divmod(rest, _MINUTE)
        return f"{d}d {h}h {m}m {s}s"

    h, rest = divmod(seconds, _HOUR)
    m, s    = divmod(rest, _MINUTE)
    return f"{h:02d}:{m:02d}:{s:02d}"
