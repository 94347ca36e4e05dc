"""GitHub access and the strict parse boundary for pull request snapshots.

The raw PyGithub objects never leave this module: every field is read,
validated and converted here, and anything unexpected raises ParseError.
GitHubFetcher turns any API or parse failure into a FetchError so the retry
executor can treat all of them alike.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from github import Github, GithubException

from prwatch_core.errors import FetchError, ParseError
from prwatch_core.models import (
    CheckConclusion,
    CheckRun,
    CheckStatus,
    Comment,
    Mergeable,
    PRState,
    Review,
    ReviewState,
    Snapshot,
    utc_now,
)

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    "queued": CheckStatus.PENDING,
    "waiting": CheckStatus.PENDING,
    "requested": CheckStatus.PENDING,
    "pending": CheckStatus.PENDING,
    "in_progress": CheckStatus.IN_PROGRESS,
    "completed": CheckStatus.COMPLETED,
}

_CONCLUSION_MAP = {
    "success": CheckConclusion.SUCCESS,
    "failure": CheckConclusion.FAILURE,
    "neutral": CheckConclusion.NEUTRAL,
    "cancelled": CheckConclusion.CANCELLED,
    "skipped": CheckConclusion.SKIPPED,
    "timed_out": CheckConclusion.FAILURE,
    "action_required": CheckConclusion.FAILURE,
    "startup_failure": CheckConclusion.FAILURE,
    "error": CheckConclusion.FAILURE,
    "stale": CheckConclusion.CANCELLED,
}

# Commit status contexts only carry a state: pending/success/failure/error.
_STATUS_CONTEXT_MAP = {
    "pending": (CheckStatus.PENDING, None),
    "success": (CheckStatus.COMPLETED, CheckConclusion.SUCCESS),
    "failure": (CheckStatus.COMPLETED, CheckConclusion.FAILURE),
    "error": (CheckStatus.COMPLETED, CheckConclusion.FAILURE),
}


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def _as_utc(value) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, datetime):
        raise ParseError(f"Expected a datetime, got {type(value).__name__}: {value!r}")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _login(user) -> str:
    login = getattr(user, "login", None) if user is not None else None
    return login or "unknown"


def parse_state(state: str | None, merged: bool) -> PRState:
    if merged:
        return PRState.MERGED
    normalized = (state or "").lower()
    if normalized == "open":
        return PRState.OPEN
    if normalized == "closed":
        return PRState.CLOSED
    raise ParseError(f"Unknown pull request state: {state!r}")


def parse_mergeable(mergeable: bool | None, mergeable_state: str | None) -> Mergeable:
    """Map GitHub's tri-state mergeable flag (None while GitHub is still computing it)."""
    if (mergeable_state or "").lower() == "dirty":
        return Mergeable.CONFLICTING
    if mergeable is None:
        return Mergeable.UNKNOWN
    return Mergeable.MERGEABLE if mergeable else Mergeable.CONFLICTING


def parse_check_run(run) -> CheckRun:
    name = getattr(run, "name", None)
    if not name:
        raise ParseError("Check run without a name")

    raw_status = (getattr(run, "status", None) or "").lower()
    if raw_status not in _STATUS_MAP:
        raise ParseError(f"Unknown status {raw_status!r} for check {name!r}")

    raw_conclusion = getattr(run, "conclusion", None)
    conclusion = None
    if raw_conclusion:
        raw_conclusion = raw_conclusion.lower()
        if raw_conclusion not in _CONCLUSION_MAP:
            raise ParseError(f"Unknown conclusion {raw_conclusion!r} for check {name!r}")
        conclusion = _CONCLUSION_MAP[raw_conclusion]

    return CheckRun(
        name=name,
        status=_STATUS_MAP[raw_status],
        conclusion=conclusion,
        started_at=_as_utc(getattr(run, "started_at", None)),
        completed_at=_as_utc(getattr(run, "completed_at", None)),
        details_url=getattr(run, "details_url", None) or getattr(run, "html_url", None),
    )


def parse_status_context(status) -> CheckRun:
    name = getattr(status, "context", None)
    if not name:
        raise ParseError("Commit status without a context")

    raw_state = (getattr(status, "state", None) or "").lower()
    if raw_state not in _STATUS_CONTEXT_MAP:
        raise ParseError(f"Unknown state {raw_state!r} for status {name!r}")
    check_status, conclusion = _STATUS_CONTEXT_MAP[raw_state]

    created_at = _as_utc(getattr(status, "created_at", None))
    updated_at = _as_utc(getattr(status, "updated_at", None))
    return CheckRun(
        name=name,
        status=check_status,
        conclusion=conclusion,
        started_at=created_at,
        completed_at=updated_at if conclusion is not None else None,
        details_url=getattr(status, "target_url", None),
    )


def parse_review(review) -> Review:
    review_id = getattr(review, "id", None)
    if review_id is None:
        raise ParseError("Review without an id")
    raw_state = (getattr(review, "state", None) or "").upper()
    try:
        state = ReviewState(raw_state)
    except ValueError:
        raise ParseError(f"Unknown review state {raw_state!r} on review {review_id}")
    return Review(
        id=str(review_id),
        author=_login(getattr(review, "user", None)),
        state=state,
        submitted_at=_as_utc(getattr(review, "submitted_at", None)),
        body=getattr(review, "body", None) or "",
    )


def parse_comment(comment) -> Comment:
    comment_id = getattr(comment, "id", None)
    if comment_id is None:
        raise ParseError("Comment without an id")
    return Comment(
        id=str(comment_id),
        author=_login(getattr(comment, "user", None)),
        body=getattr(comment, "body", None) or "",
        created_at=_as_utc(getattr(comment, "created_at", None)),
        url=getattr(comment, "html_url", None) or "",
    )


def _unique_checks(checks: list[CheckRun]) -> tuple[CheckRun, ...]:
    # GitHub lists the newest run of a re-run check first; keep that one.
    by_name: dict[str, CheckRun] = {}
    for check in checks:
        if check.name in by_name:
            logger.debug("Ignoring older run of check %s", check.name)
            continue
        by_name[check.name] = check
    return tuple(by_name.values())


def build_snapshot(
    pr,
    check_runs,
    statuses,
    reviews,
    comments,
    reviewers,
    fetched_at: datetime | None = None,
) -> Snapshot:
    """Assemble a Snapshot from raw PyGithub objects, validating every field."""
    checks = [parse_check_run(r) for r in check_runs] + [parse_status_context(s) for s in statuses]
    return Snapshot(
        number=int(pr.number),
        title=pr.title or "",
        state=parse_state(pr.state, bool(getattr(pr, "merged", False))),
        is_draft=bool(getattr(pr, "draft", False)),
        mergeable=parse_mergeable(getattr(pr, "mergeable", None), getattr(pr, "mergeable_state", None)),
        checks=_unique_checks(checks),
        reviews=tuple(parse_review(r) for r in reviews),
        comments=tuple(parse_comment(c) for c in comments),
        reviewers=tuple(reviewers),
        fetched_at=fetched_at or utc_now(),
        url=getattr(pr, "html_url", None) or "",
        head_ref=getattr(pr.head, "ref", None) or "",
    )


def get_requested_reviewers(pr) -> list[str]:
    users, teams = pr.get_review_requests()
    names = [_login(u) for u in users]
    names.extend(getattr(t, "slug", None) or getattr(t, "name", "") for t in teams)
    return names


class GitHubFetcher:
    """Fetches one Snapshot per call from the GitHub REST API."""

    def __init__(self, repo):
        self._repo = repo

    def fetch(self, pr_number: int) -> Snapshot:
        try:
            pr = get_pull(self._repo, pr_number)
            commit = self._repo.get_commit(pr.head.sha)
            return build_snapshot(
                pr,
                check_runs=list(commit.get_check_runs()),
                statuses=list(commit.get_combined_status().statuses),
                reviews=list(pr.get_reviews()),
                comments=list(pr.get_issue_comments()),
                reviewers=get_requested_reviewers(pr),
            )
        except ParseError:
            raise
        except GithubException as e:
            raise FetchError(f"Failed to fetch PR #{pr_number}: {e}") from e
        except (OSError, ValueError) as e:
            # Connection errors from requests/urllib3 derive from OSError.
            raise FetchError(f"Failed to fetch PR #{pr_number}: {e}") from e
