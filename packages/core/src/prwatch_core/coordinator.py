"""Multi-PR coordination: one shared poll cycle across several pull requests.

PRs are fetched sequentially within a cycle, in the order they were
registered. A failure for one PR is logged and skipped; it never stops the
other PRs in the same cycle from being fetched and diffed.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable

from prwatch_core.analyzer import TrendAnalyzer
from prwatch_core.conditions import all_checks_passed, checks_just_passed, is_quiescent, should_stop
from prwatch_core.config import WatchOptions
from prwatch_core.detector import detect_changes, filter_events
from prwatch_core.errors import RetryExhaustedError
from prwatch_core.models import PASSING_CONCLUSIONS, Event, StopCondition, WatchState
from prwatch_core.retry import Health, RetryExecutor
from prwatch_core.watcher import (
    Fetcher,
    Report,
    format_event,
    format_insight,
    notify_safely,
    record_check_durations,
    write_header,
)

logger = logging.getLogger(__name__)

_RULE = "=" * 43


class WatchCoordinator:
    """Per-PR state for one multi-PR session.

    A PR is complete, and no longer fetched, once ``until`` holds for it; with
    no ``until`` it is complete once it is quiescent.
    """

    def __init__(self, fetcher: Fetcher, until: StopCondition | str | None = None):
        self._fetcher = fetcher
        self._until = StopCondition(until) if until is not None else None
        if self._until == StopCondition.NONE:
            self._until = None
        self._states: dict[int, WatchState] = {}
        # Errors from the most recent fetch_all(), keyed by PR number.
        self.last_errors: dict[int, Exception] = {}

    def initialize(self, pr_numbers: Iterable[int]) -> None:
        for number in pr_numbers:
            self._states[number] = WatchState(number=number)

    def fetch_all(self) -> dict[int, list[Event]]:
        """Fetch every incomplete PR once and return the new events per PR.

        PRs without new events are absent from the result.
        """
        all_events: dict[int, list[Event]] = {}
        self.last_errors = {}

        for number, state in self._states.items():
            if state.is_complete:
                continue

            try:
                current = self._fetcher.fetch(number)
            except Exception as e:
                logger.warning("Failed to fetch PR #%d: %s", number, e)
                self.last_errors[number] = e
                continue

            events = detect_changes(state.snapshot, current)
            # The baseline must track the latest fetch even when nothing changed.
            state.snapshot = current
            state.events.extend(events)
            if events:
                all_events[number] = events

            done = should_stop(current, self._until) if self._until is not None else is_quiescent(current)
            if done:
                state.mark_complete()

        return all_events

    def are_all_complete(self) -> bool:
        return all(state.is_complete for state in self._states.values())

    def get_state(self, pr_number: int) -> WatchState | None:
        return self._states.get(pr_number)

    @property
    def states(self) -> list[WatchState]:
        return list(self._states.values())

    def render_summary(self) -> str:
        lines = ["", _RULE, f"Multi-PR Summary ({len(self._states)} PRs)", _RULE]
        for state in self._states.values():
            if state.snapshot is None:
                lines.append(f"[?] PR #{state.number}: no data fetched")
                continue
            marker = "done" if state.is_complete else "open"
            checks = state.snapshot.checks
            passed = sum(1 for c in checks if c.conclusion in PASSING_CONCLUSIONS)
            lines.append(f"[{marker}] PR #{state.number}: {state.snapshot.title}")
            lines.append(f"   Checks: {passed}/{len(checks)} | Events: {len(state.events)}")
        lines.append(_RULE)
        return "\n".join(lines)


def _condition_met_for_all(coordinator: WatchCoordinator, options: WatchOptions) -> bool:
    states = coordinator.states
    return bool(states) and all(s.snapshot is not None and should_stop(s.snapshot, options.until) for s in states)


def watch_many(
    pr_numbers: list[int],
    fetcher: Fetcher,
    options: WatchOptions | None = None,
    notifier=None,
    retry: RetryExecutor | None = None,
    analyzer: TrendAnalyzer | None = None,
    sleep: Callable[[float], None] = time.sleep,
    echo: Callable[[str], None] | None = None,
) -> str:
    """Watch several PRs in one loop and return the combined report. Never raises."""
    options = options or WatchOptions()
    retry = retry or RetryExecutor(sleep=sleep)
    analyzer = analyzer or TrendAnalyzer()
    coordinator = WatchCoordinator(fetcher, until=options.until)

    labels = ", ".join(f"#{n}" for n in pr_numbers)
    output = Report(echo)
    write_header(output, f"{len(pr_numbers)} PRs: {labels}", options, until_suffix=" (all PRs)")

    stopped = False
    try:
        coordinator.initialize(pr_numbers)

        for iteration in range(1, options.max_iterations + 1):
            previous = {s.number: s.snapshot for s in coordinator.states}
            try:
                events_by_pr = retry.execute(coordinator.fetch_all, f"Fetch {len(pr_numbers)} PRs")
            except RetryExhaustedError as e:
                output.add(f"Error fetching PR data: {e}")
                notify_safely(notifier, "notify_error", "Fetch failed", str(e), None)
                if retry.health == Health.UNHEALTHY:
                    output.add("")
                    output.add(f"Connection unhealthy ({retry.failure_count} consecutive failures). Stopping watch.")
                    stopped = True
                    break
                if iteration < options.max_iterations:
                    sleep(options.interval)
                continue

            for number, error in coordinator.last_errors.items():
                output.add(f"PR #{number}: fetch failed, will retry next cycle ({error})")

            reported_any = False
            for number, events in events_by_pr.items():
                record_check_durations(analyzer, events)
                for event in filter_events(events, options.notify_on):
                    reported_any = True
                    output.add(format_event(event, prefix=f"PR #{number}: "))
                    notify_safely(notifier, "notify", event, number)

            for state in coordinator.states:
                before = previous.get(state.number)
                if state.snapshot is not None and state.snapshot is not before:
                    if checks_just_passed(before, state.snapshot):
                        notify_safely(notifier, "notify_checks_passed", state.snapshot)

            if iteration % options.analyze_every == 0:
                for state in coordinator.states:
                    if state.snapshot is not None and not state.is_complete:
                        prefix = f"PR #{state.number}: "
                        output.extend(format_insight(i, prefix) for i in analyzer.analyze(state.snapshot))

            if options.until is not None:
                if _condition_met_for_all(coordinator, options):
                    output.add("")
                    output.add(f"Condition met for all PRs: {options.until.value}")
                    output.add("Stopping watch.")
                    stopped = True
                    break
            elif coordinator.are_all_complete():
                output.add("")
                output.add("All PRs complete. Stopping watch.")
                stopped = True
                break

            if not reported_any and iteration % options.heartbeat_every == 0:
                done = sum(1 for s in coordinator.states if s.is_complete)
                output.add(
                    f"Still watching {len(pr_numbers)} PRs ({done} complete, iteration "
                    f"{iteration}/{options.max_iterations}, connection {retry.health.value})"
                )

            if iteration < options.max_iterations:
                sleep(options.interval)

        if not stopped:
            output.add("")
            output.add("Max monitoring duration reached. Stopping watch.")

        output.add(coordinator.render_summary())
        for state in coordinator.states:
            if state.snapshot is not None:
                checks = "checks passing" if all_checks_passed(state.snapshot) else "checks not passing"
                text = f"{len(state.events)} events | {checks} | {'complete' if state.is_complete else 'open'}"
                notify_safely(notifier, "notify_summary", text, state.number)
    except Exception as e:
        logger.exception("Multi-PR watch aborted")
        output.add(f"Error watching PRs: {e}")
        notify_safely(notifier, "notify_error", "Watch aborted", str(e), None)

    return output.text()
