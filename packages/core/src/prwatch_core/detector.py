"""Change detection between two pull request snapshots.

detect_changes() is a pure function of its two arguments: it reads no clock
and keeps no state between calls. Every event it emits is stamped with the
current snapshot's fetch time, so equal inputs always give equal outputs.

Passes run in a fixed order (checks, reviews, comments, status) and each
pass preserves the order of the current snapshot's lists.
"""

from __future__ import annotations

from prwatch_core.models import (
    CheckConclusion,
    CheckRun,
    CheckStatus,
    Comment,
    Event,
    EventType,
    Mergeable,
    NotifyFilter,
    PRState,
    Review,
    ReviewState,
    Severity,
    Snapshot,
)

COMMENT_PREVIEW_CHARS = 100

_CONCLUSION_SEVERITY = {
    CheckConclusion.SUCCESS: Severity.SUCCESS,
    CheckConclusion.FAILURE: Severity.ERROR,
}

_FILTER_TYPES = {
    NotifyFilter.CHECKS: EventType.CHECK,
    NotifyFilter.REVIEWS: EventType.REVIEW,
    NotifyFilter.COMMENTS: EventType.COMMENT,
}


def detect_changes(previous: Snapshot | None, current: Snapshot) -> list[Event]:
    """Return the ordered events that explain the move from previous to current.

    With no previous snapshot, a single baseline status event is returned.
    """
    if previous is None:
        return [_baseline_event(current)]

    events: list[Event] = []
    events.extend(_check_events(previous, current))
    events.extend(_review_events(previous, current))
    events.extend(_comment_events(previous, current))
    events.extend(_status_events(previous, current))
    return events


def filter_events(events: list[Event], notify_filter: NotifyFilter | str) -> list[Event]:
    """Keep only the events the user asked to be notified about."""
    notify_filter = NotifyFilter(notify_filter)
    if notify_filter == NotifyFilter.ALL:
        return list(events)
    wanted = _FILTER_TYPES[notify_filter]
    return [e for e in events if e.type == wanted]


def _baseline_event(snapshot: Snapshot) -> Event:
    checks = snapshot.checks
    passed = sum(1 for c in checks if c.conclusion == CheckConclusion.SUCCESS)
    failed = sum(1 for c in checks if c.conclusion == CheckConclusion.FAILURE)
    pending = sum(1 for c in checks if c.conclusion is None)
    draft = " (Draft)" if snapshot.is_draft else ""

    lines = [
        f"Monitoring PR #{snapshot.number}: {snapshot.title}",
        f"State: {snapshot.state.value}{draft}",
        f"Checks: {passed} passed, {failed} failed, {pending} pending ({len(checks)} total)",
        f"Reviews: {len(snapshot.reviews)}",
        f"Comments: {len(snapshot.comments)}",
    ]
    return Event(
        type=EventType.STATUS,
        message="\n".join(lines),
        severity=Severity.INFO,
        timestamp=snapshot.fetched_at,
    )


def _check_events(previous: Snapshot, current: Snapshot) -> list[Event]:
    before = {c.name: c for c in previous.checks}
    events = []
    for check in current.checks:
        prev = before.get(check.name)
        if prev is None:
            if check.status == CheckStatus.PENDING:
                events.append(_check_event(f"Check started: {check.name}", Severity.INFO, check, current))
            continue
        if check.conclusion is not None and prev.conclusion != check.conclusion:
            severity = _CONCLUSION_SEVERITY.get(check.conclusion, Severity.WARNING)
            message = f"Check {check.conclusion.value}: {check.name}"
            events.append(_check_event(message, severity, check, current))
    return events


def _check_event(message: str, severity: Severity, check: CheckRun, snapshot: Snapshot) -> Event:
    return Event(
        type=EventType.CHECK,
        message=message,
        severity=severity,
        timestamp=snapshot.fetched_at,
        details=check,
    )


def _review_events(previous: Snapshot, current: Snapshot) -> list[Event]:
    known = {r.id for r in previous.reviews}
    return [_review_event(r, current) for r in current.reviews if r.id not in known]


def _review_event(review: Review, snapshot: Snapshot) -> Event:
    severity = Severity.SUCCESS if review.state == ReviewState.APPROVED else Severity.INFO
    return Event(
        type=EventType.REVIEW,
        message=f"Review by {review.author}: {review.state.value}",
        severity=severity,
        timestamp=snapshot.fetched_at,
        details=review,
    )


def _comment_events(previous: Snapshot, current: Snapshot) -> list[Event]:
    known = {c.id for c in previous.comments}
    return [_comment_event(c, current) for c in current.comments if c.id not in known]


def _comment_event(comment: Comment, snapshot: Snapshot) -> Event:
    body = comment.body or ""
    preview = body[:COMMENT_PREVIEW_CHARS] + ("..." if len(body) > COMMENT_PREVIEW_CHARS else "")
    return Event(
        type=EventType.COMMENT,
        message=f"Comment by {comment.author}: {preview}",
        severity=Severity.INFO,
        timestamp=snapshot.fetched_at,
        details=comment,
    )


def _status_events(previous: Snapshot, current: Snapshot) -> list[Event]:
    # Only the "becomes true" direction is reported. A conflict being resolved
    # or a PR being reopened produces no event.
    events = []
    ts = current.fetched_at
    if previous.is_draft and not current.is_draft:
        events.append(Event(EventType.STATUS, "PR marked as ready for review", Severity.SUCCESS, ts))
    if previous.state != PRState.MERGED and current.state == PRState.MERGED:
        events.append(Event(EventType.STATUS, "PR merged", Severity.SUCCESS, ts))
    if previous.state != PRState.CLOSED and current.state == PRState.CLOSED:
        events.append(Event(EventType.STATUS, "PR closed", Severity.WARNING, ts))
    if previous.mergeable != Mergeable.CONFLICTING and current.mergeable == Mergeable.CONFLICTING:
        events.append(Event(EventType.CONFLICT, "Merge conflicts detected", Severity.WARNING, ts))
    return events
