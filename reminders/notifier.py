"""
notifier.py
───────────
Local alerts for elapsed reminders.

Two channels, both best-effort:
  - an OS desktop notification spawned via subprocess
    (notify-send / osascript / PowerShell, depending on platform)
  - an on_fire callback, used by the app to push a WebSocket event

Nothing is delivered until notification permission is granted.
"""

import logging
import platform
import subprocess
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PermissionStatus(str, Enum):
    NOT_DETERMINED = "not_determined"
    GRANTED        = "granted"
    DENIED         = "denied"


class Notifier:

    def __init__(
        self,
        on_fire: Optional[Callable[[str, str, str], None]] = None,
        default_grant: bool = True,
        desktop: bool = True,
    ):
        """
        on_fire(reminder_id, title, body) is called after the desktop alert.
        default_grant is the answer used when permission is first requested.
        """
        self._status        = PermissionStatus.NOT_DETERMINED
        self._on_fire       = on_fire
        self._default_grant = default_grant
        self._desktop       = desktop

    @property
    def permission_status(self) -> PermissionStatus:
        return self._status

    def request_permission(self) -> bool:
        if self._status == PermissionStatus.NOT_DETERMINED:
            self.set_permission(self._default_grant)
        return self._status == PermissionStatus.GRANTED

    def set_permission(self, granted: bool) -> None:
        self._status = PermissionStatus.GRANTED if granted else PermissionStatus.DENIED
        if granted:
            logger.info("Notification permission granted")
        else:
            logger.info("Notification permission denied")

    def fire(self, reminder_id: str, title: str, body: str) -> bool:
        """Deliver one alert. Returns False when nothing could be delivered."""
        if self._status != PermissionStatus.GRANTED:
            logger.debug("Notification for %s suppressed: permission %s",
                         reminder_id, self._status.value)
            return False

        if self._desktop:
            self._send_os_notification(title, body)

        if self._on_fire:
            try:
                self._on_fire(reminder_id, title, body)
            except Exception:
                logger.exception("on_fire callback failed for reminder %s", reminder_id)
        return True

    @staticmethod
    def _send_os_notification(title: str, body: str) -> None:
        """
        Cross-platform OS desktop notification via subprocess.

        Linux  → notify-send (libnotify / D-Bus)
        macOS  → osascript (AppleScript bridge)
        Windows→ PowerShell NotifyIcon balloon
        """
        system = platform.system()
        try:
            if system == "Linux":
                subprocess.Popen(
                    ["notify-send", "--icon=dialog-information",
                     "--expire-time=8000", title, body],
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL
                )
            elif system == "Darwin":
                script = (
                    f'display notification "{_quote(body)}" '
                    f'with title "{_quote(title)}" sound name "Glass"'
                )
                subprocess.Popen(
                    ["osascript", "-e", script],
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL
                )
            elif system == "Windows":
                ps_cmd = (
                    "Add-Type -AssemblyName System.Windows.Forms; "
                    "$n = New-Object System.Windows.Forms.NotifyIcon; "
                    "$n.Icon = [System.Drawing.SystemIcons]::Information; "
                    "$n.Visible = $true; "
                    f"$n.ShowBalloonTip(5000, '{_quote_ps(title)}', '{_quote_ps(body)}', "
                    "[System.Windows.Forms.ToolTipIcon]::Info)"
                )
                subprocess.Popen(
                    ["powershell", "-WindowStyle", "Hidden", "-Command", ps_cmd],
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL
                )
        except FileNotFoundError:
            logger.warning("No desktop notifier available on %s", system)
        except OSError as exc:
            logger.warning("Desktop notification failed: %s", exc)


def _quote(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _quote_ps(text: str) -> str:
    return text.replace("'", "''")
