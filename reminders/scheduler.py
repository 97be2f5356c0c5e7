"""
scheduler.py
────────────
Reminder scheduling and countdown engine.

Architecture:
  One background "tick" thread wakes every second and advances every
  armed reminder's countdown by one.  Armed reminders sit in a min-heap
  ordered by the tick on which they next come due, so a tick only
  touches the reminders that actually fire.  Reminders with an end time
  are additionally checked against the wall clock on every tick.

  A reminder has at most one live TickHandle.  Handles are cancelled
  lazily: a cancelled or superseded heap entry is skipped when popped,
  and the heap is rebuilt once enough of them pile up.

  An RLock guards records, handles and the heap; notifier calls happen
  outside the lock.  A separate save lock keeps snapshot and write
  together so concurrent saves reach the store in order.
"""

import heapq
import itertools
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, time
from typing import Dict, Iterable, List, Optional, Tuple

from reminders import timing
from reminders.models import Outcome, Reminder, ReminderCreate, ReminderView, TaskItem
from reminders.notifier import Notifier, PermissionStatus
from reminders.storage import ReminderStore

logger = logging.getLogger(__name__)

# Fields a user may edit in place; id, active and countdown have their own paths
_EDITABLE = {"title", "start_time", "end_time", "repeat_every", "repeat_unit", "repeat_days"}
# Optional fields that an edit may clear
_NULLABLE = {"end_time"}

# Rebuild the heap once this many cancelled entries are waiting in it
_COMPACT_AT = 64


def _now() -> datetime:
    return datetime.now()


@dataclass
class TickHandle:
    """Live countdown for one armed reminder, captured at arm time."""
    reminder_id: str
    interval: int
    end_time: Optional[time]
    base_countdown: int
    base_tick: int
    seq: int = 0
    cancelled: bool = False

    def remaining(self, tick: int) -> int:
        return max(0, self.base_countdown - (tick - self.base_tick))

    @property
    def due_tick(self) -> int:
        # Countdown is decremented before the zero check, so 0 fires next tick
        return self.base_tick + max(self.base_countdown, 1)

    def cancel(self) -> None:
        self.cancelled = True


class Scheduler:
    """
    Owns the reminder records and their live countdowns.

    open() loads, arms and starts ticking; close() stops, disarms and saves.
    """

    def __init__(
        self,
        store: ReminderStore,
        notifier: Notifier,
        clock=None,
        tick_seconds: float = 1.0,
        toggle_off_scope: str = "all",
    ):
        self._store    = store
        self._notifier = notifier
        self._clock    = clock or _now
        self._tick_seconds     = tick_seconds
        self._toggle_off_scope = toggle_off_scope

        self._reminders: Dict[str, Reminder]   = {}
        self._handles:   Dict[str, TickHandle] = {}
        self._heap: List[Tuple[int, int, str]] = []
        self._seq   = itertools.count()
        self._ticks = 0
        self._lock  = threading.RLock()
        self._stale = 0

        # Snapshot and write happen as one step, so saves land in order
        self._save_lock = threading.Lock()

        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.last_load_outcome = Outcome.OK
        self.last_save_outcome = Outcome.OK

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def open(self) -> None:
        rows, outcome = self._store.load_with_status()
        with self._lock:
            self._reminders = {r.id: r for r in rows}
        self.last_load_outcome = outcome
        logger.info("Loaded %d reminder(s) (%s)", len(rows), outcome.value)
        self.arm_all()
        self.start()

    def close(self) -> None:
        self.stop()
        self.disarm_all()
        self.save()

    def start(self) -> None:
        """Start the background tick thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stopping.clear()
        self._thread = threading.Thread(
            target=self._tick_loop,
            daemon=True,
            name="reminder-ticker"
        )
        self._thread.start()

    def stop(self) -> None:
        """Signal the tick thread to stop and wait for it."""
        self._stopping.set()
        if self._thread is not None:
            self._thread.join(timeout=self._tick_seconds + 1)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ── Read surface ──────────────────────────────────────────────────────────

    def get_all(self) -> List[Reminder]:
        with self._lock:
            self._sync_countdowns()
            return list(self._reminders.values())

    def get(self, reminder_id: str) -> Optional[Reminder]:
        with self._lock:
            self._sync_countdowns()
            return self._reminders.get(reminder_id)

    def views(self) -> List[ReminderView]:
        with self._lock:
            self._sync_countdowns()
            return [
                ReminderView(
                    id=r.id,
                    title=r.title,
                    countdown=timing.format_countdown(r.countdown),
                    active=r.active,
                )
                for r in self._reminders.values()
            ]

    def is_armed(self, reminder_id: str) -> bool:
        with self._lock:
            return reminder_id in self._handles

    def countdown(self, reminder_id: str) -> Optional[int]:
        with self._lock:
            handle = self._handles.get(reminder_id)
            if handle is not None:
                return handle.remaining(self._ticks)
            reminder = self._reminders.get(reminder_id)
            return reminder.countdown if reminder else None

    def status(self) -> dict:
        with self._lock:
            return {
                "reminders":  len(self._reminders),
                "armed":      len(self._handles),
                "running":    self.running,
                "permission": self._notifier.permission_status.value,
                "last_load":  self.last_load_outcome.value,
                "last_save":  self.last_save_outcome.value,
            }

    # ── Write surface ─────────────────────────────────────────────────────────

    def create(self, data: ReminderCreate) -> Reminder:
        reminder = Reminder(**data.model_dump(), active=True, countdown=0)
        with self._lock:
            self._reminders[reminder.id] = reminder
        logger.info("Created reminder %s (%r)", reminder.id, reminder.title)
        self.arm_all([reminder.id])
        self.save()
        return reminder

    def update(self, reminder_id: str, **changes) -> Optional[Reminder]:
        """Edit in place.  A live countdown keeps running on its armed values."""
        with self._lock:
            reminder = self._reminders.get(reminder_id)
            if not reminder:
                return None
            for k, v in changes.items():
                if k not in _EDITABLE:
                    continue
                if v is None and k not in _NULLABLE:
                    continue
                setattr(reminder, k, v)
        self.save()
        return reminder

    def remove(self, reminder_id: str) -> bool:
        with self._lock:
            if reminder_id not in self._reminders:
                return False
            self._drop(reminder_id)
            del self._reminders[reminder_id]
        logger.info("Removed reminder %s", reminder_id)
        self.save()
        return True

    def toggle_active(self, reminder_id: str, active: bool) -> Optional[Reminder]:
        with self._lock:
            reminder = self._reminders.get(reminder_id)
            if not reminder:
                return None
            reminder.active = active

        if active:
            self.arm_all([reminder_id])
        elif self._toggle_off_scope == "self":
            self.disarm(reminder_id)
        else:
            # Switching one reminder off pauses every countdown until the next arm_all
            self.disarm_all()

        self.save()
        return reminder

    # ── Checklist ─────────────────────────────────────────────────────────────

    def add_task(self, reminder_id: str, name: str) -> Optional[Reminder]:
        with self._lock:
            reminder = self._reminders.get(reminder_id)
            if not reminder:
                return None
            reminder.tasks.append(TaskItem(name=name))
        self.save()
        return reminder

    def set_task_completed(self, reminder_id: str, index: int, completed: bool) -> Optional[Reminder]:
        with self._lock:
            reminder = self._reminders.get(reminder_id)
            if not reminder or not 0 <= index < len(reminder.tasks):
                return None
            reminder.tasks[index].is_completed = completed
        self.save()
        return reminder

    def remove_task(self, reminder_id: str, index: int) -> Optional[Reminder]:
        with self._lock:
            reminder = self._reminders.get(reminder_id)
            if not reminder or not 0 <= index < len(reminder.tasks):
                return None
            del reminder.tasks[index]
        self.save()
        return reminder

    # ── Arming ────────────────────────────────────────────────────────────────

    def arm_all(self, ids: Optional[Iterable[str]] = None, now: Optional[datetime] = None) -> List[str]:
        """
        Arm every active, unarmed reminder (or only those in ids).

        Skipped: reminders restricted to other weekdays, and reminders whose
        end time has already passed today.  Returns the ids that were armed.
        """
        now = now or self._clock()
        armed = []

        with self._lock:
            if ids is None:
                candidates = list(self._reminders.values())
            else:
                candidates = [self._reminders[i] for i in ids if i in self._reminders]

            today = timing.weekday_number(now)

            for reminder in candidates:
                if not reminder.active or reminder.id in self._handles:
                    continue
                days = {timing.day_number(d) for d in reminder.repeat_days}
                if days and today not in days:
                    continue
                if timing.is_past_end(now, reminder.end_time):
                    continue

                interval  = timing.interval_seconds(reminder.repeat_every, reminder.repeat_unit)
                countdown = timing.initial_countdown(now, reminder.start_time, interval)

                handle = TickHandle(
                    reminder_id=reminder.id,
                    interval=interval,
                    end_time=reminder.end_time,
                    base_countdown=countdown,
                    base_tick=self._ticks,
                )
                self._handles[reminder.id] = handle
                self._push(handle)
                reminder.countdown = countdown
                armed.append(reminder.id)
                logger.info("Armed reminder %s: fires in %ds, every %ds",
                            reminder.id, countdown, interval)

        return armed

    def disarm(self, reminder_id: str) -> bool:
        with self._lock:
            return self._drop(reminder_id)

    def disarm_all(self) -> None:
        with self._lock:
            for reminder_id in list(self._handles):
                self._drop(reminder_id)
            self._heap.clear()
            self._stale = 0
        logger.info("All reminders disarmed")

    # ── Ticking ───────────────────────────────────────────────────────────────

    def tick(self, now: Optional[datetime] = None) -> int:
        """
        Advance every armed countdown by one second.

        Due reminders are notified and reset to their interval; reminders
        past their end time are disarmed.  Returns the number fired.
        """
        now = now or self._clock()
        due: List[Tuple[str, str, str]] = []

        with self._lock:
            self._ticks += 1

            while self._heap and self._heap[0][0] <= self._ticks:
                _, seq, reminder_id = heapq.heappop(self._heap)
                handle = self._handles.get(reminder_id)
                if handle is None or handle.cancelled or handle.seq != seq:
                    self._stale = max(0, self._stale - 1)
                    continue
                reminder = self._reminders.get(reminder_id)
                if reminder is None:
                    self._drop(reminder_id)
                    continue

                due.append((reminder.id, reminder.title, _body(handle.interval)))
                handle.base_countdown = handle.interval
                handle.base_tick      = self._ticks
                reminder.countdown    = handle.interval
                self._push(handle)

            for reminder_id, handle in list(self._handles.items()):
                if timing.is_past_end(now, handle.end_time):
                    self._drop(reminder_id)
                    logger.info("Reminder %s passed its end time, disarmed", reminder_id)

        for reminder_id, title, body in due:
            logger.info("Reminder %s elapsed", reminder_id)
            self._notifier.fire(reminder_id, title, body)

        return len(due)

    def _tick_loop(self) -> None:
        while not self._stopping.wait(self._tick_seconds):
            try:
                self.tick()
            except Exception:
                logger.exception("Reminder tick failed")

    # ── Persistence ───────────────────────────────────────────────────────────

    def save(self) -> Outcome:
        """
        Persist the full record set.

        The first save asks for notification permission; the write goes
        ahead whatever the answer is.
        """
        if self._notifier.permission_status == PermissionStatus.NOT_DETERMINED:
            self._notifier.request_permission()

        with self._save_lock:
            with self._lock:
                self._sync_countdowns()
                rows = [r.model_copy(deep=True) for r in self._reminders.values()]
            outcome = self._store.save(rows)

        if outcome == Outcome.OK and self._notifier.permission_status == PermissionStatus.DENIED:
            outcome = Outcome.PERMISSION_DENIED
        self.last_save_outcome = outcome
        return outcome

    # ── Internal ──────────────────────────────────────────────────────────────

    def _push(self, handle: TickHandle) -> None:
        handle.seq = next(self._seq)
        heapq.heappush(self._heap, (handle.due_tick, handle.seq, handle.reminder_id))

    def _drop(self, reminder_id: str) -> bool:
        handle = self._handles.pop(reminder_id, None)
        if handle is None:
            return False
        handle.cancel()
        self._stale += 1
        if self._stale >= _COMPACT_AT:
            self._compact()
        reminder = self._reminders.get(reminder_id)
        if reminder is not None:
            reminder.countdown = handle.remaining(self._ticks)
        return True

    def _compact(self) -> None:
        live = []
        for entry in self._heap:
            handle = self._handles.get(entry[2])
            if handle is not None and handle.seq == entry[1]:
                live.append(entry)
        heapq.heapify(live)
        self._heap  = live
        self._stale = 0

    def _sync_countdowns(self) -> None:
        for reminder_id, handle in self._handles.items():
            reminder = self._reminders.get(reminder_id)
            if reminder is not None:
                reminder.countdown = handle.remaining(self._ticks)


def _body(interval: int) -> str:
    if interval <= 0:
        return "Reminder due"
    return f"Repeats every {timing.format_countdown(interval)}"
