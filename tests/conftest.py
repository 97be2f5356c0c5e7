from __future__ import annotations

from datetime import datetime, time, timedelta
from unittest.mock import MagicMock

import pytest

from reminders.models import ReminderCreate
from reminders.notifier import Notifier
from reminders.scheduler import Scheduler
from reminders.storage import ReminderStore

# A Wednesday
NOW = datetime(2024, 1, 3, 12, 0, 0)


@pytest.fixture
def on_fire():
    return MagicMock()


@pytest.fixture
def notifier(on_fire):
    return Notifier(on_fire=on_fire, default_grant=True, desktop=False)


@pytest.fixture
def store(tmp_path):
    return ReminderStore(str(tmp_path / "reminders.json"))


@pytest.fixture
def scheduler(store, notifier):
    return Scheduler(store, notifier, clock=lambda: NOW)


def make_reminder(scheduler, **overrides):
    fields = {
        "title": "Stretch",
        "start_time": time(12, 0, 5),
        "repeat_every": "10",
        "repeat_unit": "sec",
    }
    fields.update(overrides)
    return scheduler.create(ReminderCreate(**fields))


def run_ticks(scheduler, count, start=NOW):
    """Tick `count` times, one wall-clock second apart, after `start`."""
    fired = 0
    for i in range(1, count + 1):
        fired += scheduler.tick(now=start + timedelta(seconds=i))
    return fired
