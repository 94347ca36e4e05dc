"""End-of-session summary for a single watched PR.

All classification reads the typed fields on events (type, and the CheckRun
carried in ``details``) rather than the rendered message text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from prwatch_core.conditions import final_state_label
from prwatch_core.models import CheckConclusion, CheckRun, CheckStatus, Event, EventType, Snapshot, utc_now
from prwatch_core.utils.duration import format_duration

_RULE = "=" * 43


@dataclass
class SummaryStats:
    duration: float  # seconds
    total_events: int
    checks_total: int
    checks_succeeded: int
    checks_failed: int
    reviews_received: int
    comments_added: int
    final_state: str
    reviewers: list[str] = field(default_factory=list)
    average_check_time: float | None = None
    longest_check: tuple[str, float] | None = None


class SessionSummary:
    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock
        self.started_at = clock()
        self.events: list[Event] = []
        self._check_started: dict[str, datetime] = {}
        self.check_durations: dict[str, float] = {}

    def record_event(self, event: Event) -> None:
        self.events.append(event)
        if event.type != EventType.CHECK or not isinstance(event.details, CheckRun):
            return

        check = event.details
        if check.status == CheckStatus.PENDING and check.conclusion is None:
            self._check_started[check.name] = event.timestamp
            return
        if check.conclusion is None:
            return

        duration = check.duration
        if duration is not None:
            self.check_durations[check.name] = duration.total_seconds()
        elif check.name in self._check_started:
            observed = event.timestamp - self._check_started[check.name]
            self.check_durations[check.name] = observed.total_seconds()

    def stats(self, final_snapshot: Snapshot) -> SummaryStats:
        check_runs = [e.details for e in self.events if e.type == EventType.CHECK and isinstance(e.details, CheckRun)]
        reviewers = list(dict.fromkeys(r.author for r in final_snapshot.reviews))

        average = None
        longest = None
        if self.check_durations:
            average = sum(self.check_durations.values()) / len(self.check_durations)
            longest = max(self.check_durations.items(), key=lambda item: item[1])

        return SummaryStats(
            duration=(self._clock() - self.started_at).total_seconds(),
            total_events=len(self.events),
            checks_total=len(final_snapshot.checks),
            checks_succeeded=sum(1 for c in check_runs if c.conclusion == CheckConclusion.SUCCESS),
            checks_failed=sum(1 for c in check_runs if c.conclusion == CheckConclusion.FAILURE),
            reviews_received=sum(1 for e in self.events if e.type == EventType.REVIEW),
            comments_added=sum(1 for e in self.events if e.type == EventType.COMMENT),
            final_state=final_state_label(final_snapshot),
            reviewers=reviewers,
            average_check_time=average,
            longest_check=longest,
        )

    def generate(self, final_snapshot: Snapshot) -> str:
        stats = self.stats(final_snapshot)
        lines = ["", _RULE, f"PR #{final_snapshot.number} Summary", _RULE, ""]

        lines.append(f"Duration: {format_duration(stats.duration)}")
        lines.append(f"Started: {self.started_at.astimezone().strftime('%H:%M:%S')}")
        lines.append(f"Finished: {self._clock().astimezone().strftime('%H:%M:%S')}")
        lines.append("")

        lines.append("CI/CD Checks:")
        lines.append(f"   Succeeded: {stats.checks_succeeded}")
        if stats.checks_failed:
            lines.append(f"   Failed: {stats.checks_failed}")
        lines.append(f"   Total: {stats.checks_total}")
        if stats.average_check_time is not None:
            lines.append(f"   Average time: {format_duration(stats.average_check_time)}")
        if stats.longest_check is not None:
            name, seconds = stats.longest_check
            lines.append(f"   Longest: {name} ({format_duration(seconds)})")
        lines.append("")

        if stats.reviews_received:
            lines.append("Reviews:")
            lines.append(f"   Reviews received: {stats.reviews_received}")
            if stats.reviewers:
                lines.append(f"   Reviewers: {', '.join(stats.reviewers)}")
            lines.append("")

        if stats.comments_added:
            lines.append(f"Comments: {stats.comments_added} new comments")
            lines.append("")

        lines.append(f"Final State: {stats.final_state}")
        lines.append(f"Total Events: {stats.total_events}")
        lines.append("")
        lines.append(_RULE)
        return "\n".join(lines)

    def generate_compact(self, final_snapshot: Snapshot) -> str:
        """One-line variant used for desktop notifications."""
        stats = self.stats(final_snapshot)
        parts = [f"Duration: {format_duration(stats.duration)}"]
        if stats.checks_succeeded:
            parts.append(f"{stats.checks_succeeded} checks passed")
        if stats.checks_failed:
            parts.append(f"{stats.checks_failed} failed")
        if stats.reviews_received:
            parts.append(f"{stats.reviews_received} reviews")
        parts.append(stats.final_state)
        return " | ".join(parts)
