"""Trend analysis over check durations, plus review and merge-readiness hints.

The analyzer is advisory: the watch loop appends its insights to the report
on a slower cadence than polling and never changes control flow because of
them. Duration history lives on the instance so each session (and each test)
starts from a clean slate.
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime

from prwatch_core.conditions import all_checks_passed, has_approval
from prwatch_core.models import CheckStatus, Insight, InsightKind, Mergeable, ReviewState, Snapshot, utc_now
from prwatch_core.utils.duration import format_duration

logger = logging.getLogger(__name__)

HISTORY_SIZE = 10
SLOW_CHECK_SECONDS = 10 * 60
VERY_SLOW_CHECK_SECONDS = 20 * 60
SLOWDOWN_FACTOR = 1.5
MIN_SAMPLES = 3


class TrendAnalyzer:
    def __init__(self, history_size: int = HISTORY_SIZE):
        self._history_size = history_size
        self._durations: dict[str, deque[float]] = {}

    def record_check_duration(self, check_name: str, seconds: float) -> None:
        """Remember one completed run; the oldest sample drops out past the limit."""
        history = self._durations.setdefault(check_name, deque(maxlen=self._history_size))
        history.append(float(seconds))
        logger.debug("Recorded %.0fs for %s (%d samples)", seconds, check_name, len(history))

    def history(self, check_name: str) -> list[float]:
        return list(self._durations.get(check_name, ()))

    def average_duration(self, check_name: str) -> float | None:
        history = self._durations.get(check_name)
        if not history:
            return None
        return sum(history) / len(history)

    def analyze(self, snapshot: Snapshot, now: datetime | None = None) -> list[Insight]:
        now = now or utc_now()
        insights: list[Insight] = []
        insights.extend(self._check_duration_insights(snapshot, now))
        insights.extend(self._review_insights(snapshot))
        insights.extend(self._merge_readiness_insights(snapshot))
        return insights

    def _check_duration_insights(self, snapshot: Snapshot, now: datetime) -> list[Insight]:
        insights = []
        for check in snapshot.checks:
            if check.status == CheckStatus.COMPLETED or check.started_at is None:
                continue

            elapsed = (now - check.started_at).total_seconds()
            if elapsed > VERY_SLOW_CHECK_SECONDS:
                insights.append(
                    Insight(
                        InsightKind.WARNING,
                        f"{check.name} is taking unusually long ({format_duration(elapsed)}). "
                        "This might indicate an issue.",
                    )
                )
            elif elapsed > SLOW_CHECK_SECONDS:
                insights.append(Insight(InsightKind.INFO, f"{check.name} is running for {format_duration(elapsed)}"))

            history = self._durations.get(check.name)
            if history and len(history) >= MIN_SAMPLES:
                average = sum(history) / len(history)
                if elapsed > average * SLOWDOWN_FACTOR:
                    insights.append(
                        Insight(
                            InsightKind.WARNING,
                            f"{check.name} is 50% slower than usual (avg: {format_duration(average)})",
                        )
                    )
        return insights

    def _review_insights(self, snapshot: Snapshot) -> list[Insight]:
        insights = []
        passed = all_checks_passed(snapshot)
        approved = has_approval(snapshot)
        changes_requested = sum(1 for r in snapshot.reviews if r.state == ReviewState.CHANGES_REQUESTED)

        if passed and not snapshot.reviews:
            if snapshot.reviewers:
                message = f"All checks passed! Ready for review by {len(snapshot.reviewers)} reviewer(s)."
            else:
                message = "All checks passed! Ready for review."
            insights.append(Insight(InsightKind.TIP, message))

        if approved and not passed:
            insights.append(Insight(InsightKind.INFO, "PR is approved but checks are still running/failing"))

        if changes_requested:
            insights.append(Insight(InsightKind.INFO, f"{changes_requested} reviewer(s) requested changes"))
        return insights

    def _merge_readiness_insights(self, snapshot: Snapshot) -> list[Insight]:
        insights = []
        passed = all_checks_passed(snapshot)
        conflicting = snapshot.mergeable == Mergeable.CONFLICTING

        if passed and has_approval(snapshot) and not conflicting and not snapshot.is_draft:
            insights.append(Insight(InsightKind.INFO, "PR is ready to merge! All checks passed and approved."))
        if conflicting:
            insights.append(Insight(InsightKind.WARNING, "Merge conflicts detected. Rebase or merge main branch."))
        if snapshot.is_draft and passed:
            insights.append(Insight(InsightKind.TIP, "All checks passed. Consider marking PR as ready for review."))
        return insights
