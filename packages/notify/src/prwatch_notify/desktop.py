"""DesktopNotifier — macOS Notification Center plus an optional terminal bell.

Notifications go through ``osascript``, which ships with every macOS install.
On other platforms the binary is missing and each call quietly logs and
returns; the watch session carries on either way.
"""

from __future__ import annotations

import logging
import subprocess
import sys
from typing import TYPE_CHECKING, Callable

from prwatch_core.errors import NotificationError
from prwatch_core.models import Severity
from prwatch_notify.base import BaseNotifier

if TYPE_CHECKING:
    from prwatch_core.models import Event, Snapshot

logger = logging.getLogger(__name__)

_SOUNDS = {
    Severity.SUCCESS: "Glass",
    Severity.ERROR: "Basso",
    Severity.WARNING: "Ping",
    Severity.INFO: "default",
}


def escape_applescript(text: str) -> str:
    # Backslashes first so the quote escapes are not doubled.
    return text.replace("\\", "\\\\").replace('"', '\\"')


def build_script(message: str, title: str, sound: str, subtitle: str | None = None) -> str:
    script = f'display notification "{escape_applescript(message)}" with title "{escape_applescript(title)}"'
    if subtitle:
        script += f' subtitle "{escape_applescript(subtitle)}"'
    return script + f' sound name "{sound}"'


class DesktopNotifier(BaseNotifier):
    def __init__(self, desktop: bool = True, bell: bool = False, runner: Callable = subprocess.run, stream=None):
        self.desktop = desktop
        self.bell = bell
        self._runner = runner
        self._stream = stream or sys.stdout

    def _run_osascript(self, script: str) -> None:
        try:
            result = self._runner(["osascript", "-e", script], capture_output=True, text=True, timeout=5)
        except (FileNotFoundError, subprocess.TimeoutExpired, OSError) as e:
            raise NotificationError(f"osascript unavailable: {e}") from e
        if getattr(result, "returncode", 0) != 0:
            stderr = (result.stderr or "").strip()
            raise NotificationError(f"osascript exited with {result.returncode}: {stderr}")

    def _display(self, script: str) -> None:
        try:
            self._run_osascript(script)
        except NotificationError as e:
            logger.warning("Desktop notification failed: %s", e)

    def _ring(self, times: int) -> None:
        try:
            self._stream.write("\a" * times)
            self._stream.flush()
        except (OSError, ValueError) as e:
            logger.debug("Terminal bell failed: %s", e)

    def notify(self, event: Event, pr_number: int) -> None:
        if self.desktop:
            sound = _SOUNDS.get(event.severity, "default")
            self._display(build_script(event.message.splitlines()[0], f"PR #{pr_number}", sound))
        if self.bell and event.severity in (Severity.SUCCESS, Severity.ERROR):
            self._ring(1)

    def notify_summary(self, summary: str, pr_number: int) -> None:
        if self.desktop:
            self._display(build_script(summary, f"PR #{pr_number} Complete", "Glass"))
        if self.bell:
            self._ring(2)

    def notify_error(self, title: str, message: str, pr_number: int | None) -> None:
        subtitle = f"PR #{pr_number}" if pr_number is not None else "PR watch"
        if self.desktop:
            self._display(build_script(message, title, "Basso", subtitle=subtitle))
        if self.bell:
            self._ring(3)
        logger.error("[%s] %s: %s", subtitle, title, message)

    def notify_checks_passed(self, snapshot: Snapshot) -> None:
        if self.desktop:
            count = len(snapshot.checks)
            message = f"{count}/{count} checks succeeded"
            self._display(build_script(message, f"PR #{snapshot.number}", "Glass", subtitle="All Checks Passed"))
