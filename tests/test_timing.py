from datetime import datetime, time, timedelta, timezone

import pytest

from reminders import timing
from reminders.models import RepeatUnit, Weekday


@pytest.mark.parametrize("every, unit, expected", [
    ("2", "hour", 7200),
    ("abc", "hour", 0),
    ("1", "week", 604800),
    ("10", "second", 10),
    ("3", "day", 259200),
    ("", "minute", 0),
    ("-3", "minute", 0),
    (" 2", "hour", 0),
    ("5", "fortnight", 0),
])
def test_interval_seconds(every, unit, expected):
    assert timing.interval_seconds(every, unit) == expected


def test_repeat_unit_aliases():
    assert RepeatUnit("sec") is RepeatUnit.SECOND
    assert RepeatUnit("mins") is RepeatUnit.MINUTE
    assert RepeatUnit("Hours") is RepeatUnit.HOUR
    assert RepeatUnit("d") is RepeatUnit.DAY
    assert RepeatUnit.WEEK.seconds == 604800
    with pytest.raises(ValueError):
        RepeatUnit("month")


def test_weekday_number_runs_sunday_to_saturday():
    sunday = datetime(2024, 1, 7, 9, 0)
    assert timing.weekday_number(sunday) == 1
    assert timing.weekday_number(sunday + timedelta(days=3)) == 4
    assert timing.weekday_number(sunday + timedelta(days=6)) == 7
    assert timing.day_number(Weekday.SUN) == 1
    assert timing.day_number("Wed") == 4
    assert timing.day_number(Weekday.SAT) == 7


def test_format_countdown_examples():
    assert timing.format_countdown(3661) == "01:01:01"
    assert timing.format_countdown(90000) == "1d 1h 0m 0s"
    assert timing.format_countdown(700000) == "1w 1d 2h 26m 40s"


def test_format_countdown_boundaries():
    assert timing.format_countdown(0) == "00:00:00"
    assert timing.format_countdown(86399) == "23:59:59"
    assert timing.format_countdown(86400) == "1d 0h 0m 0s"
    assert timing.format_countdown(604800) == "1w 0d 0h 0m 0s"
    assert timing.format_countdown(-5) == "00:00:00"


def test_initial_countdown_before_and_after_start():
    now = datetime(2024, 1, 3, 12, 0, 0)
    assert timing.initial_countdown(now, time(12, 0, 5), 10) == 5
    assert timing.initial_countdown(now, time(13, 0), 10) == 3600
    # start already reached: seed with the interval
    assert timing.initial_countdown(now, time(12, 0, 0), 10) == 10
    assert timing.initial_countdown(now, time(8, 30), 600) == 600
    assert timing.initial_countdown(now, time(8, 30), 0) == 0


def test_is_past_end():
    now = datetime(2024, 1, 3, 12, 0, 0)
    assert timing.is_past_end(now, None) is False
    assert timing.is_past_end(now, time(11, 59, 59)) is True
    assert timing.is_past_end(now, time(12, 0, 0)) is False
    assert timing.is_past_end(now, time(18, 0)) is False


def test_combine_today_keeps_timezone():
    now = datetime(2024, 1, 3, 12, 0, tzinfo=timezone.utc)
    start = timing.combine_today(now, time(12, 0, 30))
    assert start.tzinfo is timezone.utc
    assert (start - now).total_seconds() == 30
