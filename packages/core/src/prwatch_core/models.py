"""Typed records for pull request observations.

Everything in here is pure data. A Snapshot is produced by a fetcher once per
poll and is superseded by the next successful fetch for the same PR; Events are
derived from pairs of snapshots and are never mutated after creation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PRState(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    MERGED = "MERGED"


class Mergeable(str, Enum):
    MERGEABLE = "MERGEABLE"
    CONFLICTING = "CONFLICTING"
    UNKNOWN = "UNKNOWN"


class CheckStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class CheckConclusion(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    NEUTRAL = "neutral"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"


# Conclusions that count as "passing" for stop conditions and insights.
PASSING_CONCLUSIONS = frozenset({CheckConclusion.SUCCESS, CheckConclusion.SKIPPED, CheckConclusion.NEUTRAL})


class ReviewState(str, Enum):
    APPROVED = "APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    COMMENTED = "COMMENTED"
    DISMISSED = "DISMISSED"
    PENDING = "PENDING"


class EventType(str, Enum):
    CHECK = "check"
    REVIEW = "review"
    COMMENT = "comment"
    STATUS = "status"
    CONFLICT = "conflict"


class Severity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class InsightKind(str, Enum):
    WARNING = "warning"
    INFO = "info"
    TIP = "tip"


class NotifyFilter(str, Enum):
    ALL = "all"
    CHECKS = "checks"
    REVIEWS = "reviews"
    COMMENTS = "comments"


class StopCondition(str, Enum):
    CHECKS_PASS = "checks-pass"
    APPROVED = "approved"
    MERGED = "merged"
    CLOSED = "closed"
    NONE = "none"


@dataclass(frozen=True)
class CheckRun:
    """One named CI check. Identity across snapshots is the name alone."""

    name: str
    status: CheckStatus
    conclusion: CheckConclusion | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    details_url: str | None = None

    @property
    def is_finished(self) -> bool:
        return self.status == CheckStatus.COMPLETED

    @property
    def duration(self) -> timedelta | None:
        if self.started_at is None or self.completed_at is None:
            return None
        return self.completed_at - self.started_at


@dataclass(frozen=True)
class Review:
    id: str
    author: str
    state: ReviewState
    submitted_at: datetime | None = None
    body: str = ""


@dataclass(frozen=True)
class Comment:
    id: str
    author: str
    body: str
    created_at: datetime | None = None
    url: str = ""


@dataclass(frozen=True)
class Snapshot:
    """Complete point-in-time observation of one pull request.

    Check names must be unique within a snapshot: the change detector matches
    checks across snapshots by name, so a duplicate would make the match
    ambiguous. The fetcher deduplicates before constructing a Snapshot.
    """

    number: int
    title: str
    state: PRState = PRState.OPEN
    is_draft: bool = False
    mergeable: Mergeable = Mergeable.UNKNOWN
    checks: tuple[CheckRun, ...] = ()
    reviews: tuple[Review, ...] = ()
    comments: tuple[Comment, ...] = ()
    reviewers: tuple[str, ...] = ()
    fetched_at: datetime = field(default_factory=utc_now)
    url: str = ""
    head_ref: str = ""

    def __post_init__(self):
        seen: set[str] = set()
        for check in self.checks:
            if check.name in seen:
                raise ValueError(f"Duplicate check name in snapshot of PR #{self.number}: {check.name!r}")
            seen.add(check.name)

    def check(self, name: str) -> CheckRun | None:
        for c in self.checks:
            if c.name == name:
                return c
        return None


@dataclass(frozen=True)
class Event:
    """A classified change derived by diffing two snapshots."""

    type: EventType
    message: str
    severity: Severity
    timestamp: datetime
    details: CheckRun | Review | Comment | None = None


@dataclass(frozen=True)
class Insight:
    """Advisory text produced by the trend analyzer. Never affects control flow."""

    kind: InsightKind
    message: str


@dataclass
class WatchState:
    """Per-PR state owned by the multi-PR coordinator.

    ``events`` only ever grows and ``is_complete`` only ever goes from False to
    True within a session.
    """

    number: int
    snapshot: Snapshot | None = None
    events: list[Event] = field(default_factory=list)
    is_complete: bool = False

    def mark_complete(self) -> None:
        self.is_complete = True
