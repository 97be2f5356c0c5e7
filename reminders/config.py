"""Runtime settings resolved from environment variables."""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from functools import lru_cache

_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))


@dataclass
class Settings:
    """Runtime configuration resolved from environment variables."""

    data_dir: str = field(default_factory=lambda: os.path.join(_PACKAGE_DIR, "data"))
    tick_seconds: float = 1.0
    notification_permission: str = "grant"
    desktop_notifications: bool = True
    toggle_off_scope: str = "all"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        env_data_dir = os.getenv("REMINDERS_DATA_DIR")
        env_tick = os.getenv("REMINDERS_TICK_SECONDS")
        env_permission = os.getenv("REMINDERS_NOTIFICATION_PERMISSION")
        env_desktop = os.getenv("REMINDERS_DESKTOP_NOTIFICATIONS")
        env_scope = os.getenv("REMINDERS_TOGGLE_OFF_SCOPE")
        env_level = os.getenv("REMINDERS_LOG_LEVEL")
        if env_data_dir:
            self.data_dir = env_data_dir
        if env_tick:
            try:
                tick = float(env_tick)
            except ValueError:
                tick = 0.0
            if tick > 0:
                self.tick_seconds = tick
        if env_permission and env_permission.lower() in ("grant", "deny"):
            self.notification_permission = env_permission.lower()
        if env_desktop:
            self.desktop_notifications = env_desktop.lower() not in ("0", "false", "no", "off")
        if env_scope and env_scope.lower() in ("all", "self"):
            self.toggle_off_scope = env_scope.lower()
        if env_level and env_level.upper() in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            self.log_level = env_level.upper()

    @property
    def reminders_file(self) -> str:
        return os.path.join(self.data_dir, "reminders.json")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()
