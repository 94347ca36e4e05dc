"""No-op notifier — the default when no sink is configured.

Using a NoOpNotifier rather than None lets the CLI always hand a sink to the
watch loop without conditional checks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from prwatch_notify.base import BaseNotifier

if TYPE_CHECKING:
    from prwatch_core.models import Event


class NoOpNotifier(BaseNotifier):
    def notify(self, event: Event, pr_number: int) -> None:
        pass

    def notify_summary(self, summary: str, pr_number: int) -> None:
        pass

    def notify_error(self, title: str, message: str, pr_number: int | None) -> None:
        pass
