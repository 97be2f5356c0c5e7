"""
storage.py
──────────
JSON file-based persistence for the reminder set.

The whole set is one flat blob, {"reminders": [...]}, rewritten in full on
every save. Failures never propagate: a bad or missing file loads as an
empty set, and a failed write is logged and reported as an Outcome.
"""

import os
import json
import logging
import threading
from typing import List, Tuple

from pydantic import ValidationError

from reminders.models import Outcome, Reminder

logger = logging.getLogger(__name__)


class ReminderStore:

    def __init__(self, path: str):
        self.path  = path
        self._lock = threading.Lock()

    def load(self) -> List[Reminder]:
        reminders, _ = self.load_with_status()
        return reminders

    def load_with_status(self) -> Tuple[List[Reminder], Outcome]:
        with self._lock:
            if not os.path.exists(self.path):
                return [], Outcome.OK
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                rows = data.get("reminders", [])
                return [Reminder.model_validate(row) for row in rows], Outcome.OK
            except (OSError, ValueError, AttributeError, TypeError, ValidationError) as exc:
                logger.warning("Could not decode %s, starting empty: %s", self.path, exc)
                return [], Outcome.DECODE_ERROR

    def save(self, reminders: List[Reminder]) -> Outcome:
        with self._lock:
            try:
                data = {"reminders": [r.model_dump(mode="json") for r in reminders]}
                self._write(data)
            except (OSError, TypeError, ValueError) as exc:
                logger.error("Could not save reminders to %s: %s", self.path, exc)
                return Outcome.ENCODE_ERROR
        return Outcome.OK

    def _write(self, data: dict) -> None:
        """Atomic write: write to a tmp file then rename (os.replace)."""
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        tmp = self.path + ".tmp"
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp, self.path)
        except (OSError, TypeError, ValueError):
            if os.path.exists(tmp):
                os.remove(tmp)
            raise
