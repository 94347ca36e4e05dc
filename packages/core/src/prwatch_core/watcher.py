"""Single-PR watch loop.

One cycle: fetch (through the retry executor) → detect → filter → report →
notify → evaluate stop → sleep. The loop owns every piece of mutable state it
advances (previous snapshot, retry counter, analyzer history, summary), and
it only ever stops between cycles.

watch_pr() always returns the textual session report and never raises.
Notification sinks are duck-typed: anything with notify / notify_summary /
notify_error works, and notify_checks_passed is optional.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Protocol

from prwatch_core.analyzer import TrendAnalyzer
from prwatch_core.conditions import checks_just_passed, is_quiescent, should_stop
from prwatch_core.config import WatchOptions
from prwatch_core.detector import detect_changes, filter_events
from prwatch_core.errors import RetryExhaustedError
from prwatch_core.models import CheckRun, Event, EventType, Insight, Snapshot
from prwatch_core.retry import Health, RetryExecutor
from prwatch_core.summary import SessionSummary

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    def fetch(self, pr_number: int) -> Snapshot: ...


class Report:
    """Accumulates the session's text output, optionally echoing each line as it arrives."""

    def __init__(self, echo: Callable[[str], None] | None = None):
        self.lines: list[str] = []
        self._echo = echo

    def add(self, line: str = "") -> None:
        self.lines.append(line)
        if self._echo is not None:
            try:
                self._echo(line)
            except Exception as e:
                logger.warning("Could not echo report line: %s", e)

    def extend(self, lines) -> None:
        for line in lines:
            self.add(line)

    def text(self) -> str:
        return "\n".join(self.lines)


def format_event(event: Event, prefix: str = "") -> str:
    timestamp = event.timestamp.astimezone().strftime("%H:%M:%S")
    return f"[{timestamp}] {prefix}{event.message}"


def format_insight(insight: Insight, prefix: str = "") -> str:
    return f"  [{insight.kind.value}] {prefix}{insight.message}"


def record_check_durations(analyzer: TrendAnalyzer, events: list[Event]) -> None:
    """Feed the analyzer with the runtime of every check that just concluded."""
    for event in events:
        if event.type != EventType.CHECK or not isinstance(event.details, CheckRun):
            continue
        check = event.details
        if check.conclusion is not None and check.duration is not None:
            analyzer.record_check_duration(check.name, check.duration.total_seconds())


def notify_safely(notifier, method: str, *args) -> None:
    """Call a sink method, logging instead of raising if the sink misbehaves."""
    if notifier is None:
        return
    handler = getattr(notifier, method, None)
    if handler is None:
        return
    try:
        handler(*args)
    except Exception as e:
        logger.warning("Notifier %s.%s failed: %s", type(notifier).__name__, method, e)


def write_header(output: Report, label: str, options: WatchOptions, until_suffix: str = "") -> None:
    output.add(f"Watching {label}")
    output.add(f"Notify on: {options.notify_on.value}")
    output.add(f"Polling interval: {options.interval}s")
    if options.until is not None:
        output.add(f"Until: {options.until.value}{until_suffix}")
    output.add("")


def watch_pr(
    pr_number: int,
    fetcher: Fetcher,
    options: WatchOptions | None = None,
    notifier=None,
    retry: RetryExecutor | None = None,
    analyzer: TrendAnalyzer | None = None,
    summary: SessionSummary | None = None,
    sleep: Callable[[float], None] = time.sleep,
    echo: Callable[[str], None] | None = None,
) -> str:
    """Watch one pull request until a stop condition, quiescence or the iteration cap.

    ``echo`` receives every report line as soon as it is produced, for callers
    that want live output; the full report is returned either way.
    """
    options = options or WatchOptions()
    retry = retry or RetryExecutor(sleep=sleep)
    analyzer = analyzer or TrendAnalyzer()
    summary = summary or SessionSummary()

    output = Report(echo)
    write_header(output, f"PR #{pr_number}", options)
    previous: Snapshot | None = None
    stopped = False

    try:
        for iteration in range(1, options.max_iterations + 1):
            try:
                current = retry.execute(lambda: fetcher.fetch(pr_number), f"Fetch PR #{pr_number}")
            except RetryExhaustedError as e:
                output.add(f"Error fetching PR data: {e}")
                notify_safely(notifier, "notify_error", "Fetch failed", str(e), pr_number)
                if retry.health == Health.UNHEALTHY:
                    output.add("")
                    output.add(f"Connection unhealthy ({retry.failure_count} consecutive failures). Stopping watch.")
                    stopped = True
                    break
                if iteration < options.max_iterations:
                    sleep(options.interval)
                continue

            events = detect_changes(previous, current)
            record_check_durations(analyzer, events)
            for event in events:
                summary.record_event(event)

            reported = filter_events(events, options.notify_on)
            for event in reported:
                output.add(format_event(event))
                notify_safely(notifier, "notify", event, pr_number)

            if checks_just_passed(previous, current):
                notify_safely(notifier, "notify_checks_passed", current)

            if iteration % options.analyze_every == 0:
                output.extend(format_insight(i) for i in analyzer.analyze(current))

            previous = current

            if options.until is not None:
                if should_stop(current, options.until):
                    output.add("")
                    output.add(f"Condition met: {options.until.value}")
                    output.add("Stopping watch.")
                    stopped = True
                    break
            elif not reported and is_quiescent(current):
                output.add("")
                output.add("No more activity detected. Stopping watch.")
                stopped = True
                break

            if not reported and iteration % options.heartbeat_every == 0:
                output.add(
                    f"Still watching PR #{pr_number} (iteration {iteration}/{options.max_iterations}, "
                    f"connection {retry.health.value})"
                )

            if iteration < options.max_iterations:
                sleep(options.interval)

        if not stopped:
            output.add("")
            output.add("Max monitoring duration reached. Stopping watch.")

        if previous is not None:
            output.add(summary.generate(previous))
            notify_safely(notifier, "notify_summary", summary.generate_compact(previous), pr_number)
    except Exception as e:
        logger.exception("Watch of PR #%d aborted", pr_number)
        output.add(f"Error watching PR #{pr_number}: {e}")
        notify_safely(notifier, "notify_error", "Watch aborted", str(e), pr_number)

    return output.text()
