"""Abstract notification sink.

The watch loops depend on this interface rather than a concrete sink, so
desktop, ticket-tracker or chat backends are swappable without touching the
engine. Delivery is best-effort: implementations catch and log their own
failures and never raise into the watch loop.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prwatch_core.models import Event, Snapshot


class BaseNotifier(ABC):
    @abstractmethod
    def notify(self, event: Event, pr_number: int) -> None:
        """Deliver one reported event."""

    @abstractmethod
    def notify_summary(self, summary: str, pr_number: int) -> None:
        """Deliver the end-of-session summary for one PR."""

    @abstractmethod
    def notify_error(self, title: str, message: str, pr_number: int | None) -> None:
        """Deliver an error. ``pr_number`` is None for session-wide failures."""

    def notify_checks_passed(self, snapshot: Snapshot) -> None:
        """Called once when a PR's checks turn all green. Optional."""

    def close(self) -> None:
        """Release any resources held by the sink. Default is a no-op."""
