"""Fan a single notification out to several sinks."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from prwatch_notify.base import BaseNotifier

if TYPE_CHECKING:
    from prwatch_core.models import Event, Snapshot

logger = logging.getLogger(__name__)


class CompositeNotifier(BaseNotifier):
    """Delivers to every wrapped sink; one failing sink does not starve the rest."""

    def __init__(self, sinks: list[BaseNotifier]):
        self.sinks = list(sinks)

    def _each(self, method: str, *args) -> None:
        for sink in self.sinks:
            try:
                getattr(sink, method)(*args)
            except Exception as e:
                logger.warning("%s.%s failed: %s", type(sink).__name__, method, e)

    def notify(self, event: Event, pr_number: int) -> None:
        self._each("notify", event, pr_number)

    def notify_summary(self, summary: str, pr_number: int) -> None:
        self._each("notify_summary", summary, pr_number)

    def notify_error(self, title: str, message: str, pr_number: int | None) -> None:
        self._each("notify_error", title, message, pr_number)

    def notify_checks_passed(self, snapshot: Snapshot) -> None:
        self._each("notify_checks_passed", snapshot)

    def close(self) -> None:
        self._each("close")
