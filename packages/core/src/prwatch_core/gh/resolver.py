"""Resolve human-friendly identifiers (ticket keys like TAK-1680) to PR numbers.

A ticket key is looked up case-insensitively in the most recent pull requests
of every state, checking branch names first (most reliable), then titles,
then descriptions.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from itertools import islice

from github import GithubException

from prwatch_core.errors import ResolutionError

logger = logging.getLogger(__name__)

_TICKET_KEY_RE = re.compile(r"([A-Z]+-\d+)")
_PR_NUMBER_RE = re.compile(r"^#?(\d+)$")

DEFAULT_SEARCH_LIMIT = 50


@dataclass(frozen=True)
class PRResolution:
    number: int
    title: str
    branch: str
    matched_in: str  # "branch" | "title" | "body"


def extract_ticket_key(title: str, branch: str | None = None) -> str | None:
    """Find a ticket key such as PROJ-123, preferring the branch name."""
    for text in (branch, title):
        if text:
            match = _TICKET_KEY_RE.search(text)
            if match:
                return match.group(1)
    return None


def _match_location(pr, key: str) -> str | None:
    if key in (pr.head.ref or "").upper():
        return "branch"
    if key in (pr.title or "").upper():
        return "title"
    if key in (pr.body or "").upper():
        return "body"
    return None


class PRResolver:
    def __init__(self, repo, search_limit: int = DEFAULT_SEARCH_LIMIT):
        self._repo = repo
        self._search_limit = search_limit

    def resolve(self, identifier) -> int:
        """Return the PR number for a number, "#123", or a ticket key."""
        if isinstance(identifier, int) and not isinstance(identifier, bool):
            return identifier
        text = str(identifier).strip()
        match = _PR_NUMBER_RE.match(text)
        if match:
            return int(match.group(1))

        matches = self._search(text)
        if not matches:
            raise ResolutionError(f"Could not find PR for ticket {text}")
        # Prefer the strongest kind of match; within a kind, the most recent PR.
        for location in ("branch", "title", "body"):
            for resolution in matches:
                if resolution.matched_in == location:
                    logger.debug("Resolved %s to PR #%d via %s", text, resolution.number, location)
                    return resolution.number
        return matches[0].number

    def resolve_multiple(self, identifiers) -> list[int]:
        """Resolve every identifier or fail the whole batch on the first miss."""
        resolved = []
        for identifier in identifiers:
            try:
                resolved.append(self.resolve(identifier))
            except ResolutionError as e:
                raise ResolutionError(f"Failed to resolve {identifier}: {e}") from e
        return resolved

    def find_all_for_ticket(self, ticket_key: str) -> list[PRResolution]:
        return self._search(ticket_key)

    def _search(self, ticket_key: str) -> list[PRResolution]:
        key = ticket_key.strip().upper()
        if not key:
            raise ResolutionError("Empty identifier")
        try:
            pulls = list(islice(self._repo.get_pulls(state="all"), self._search_limit))
        except GithubException as e:
            raise ResolutionError(f"Failed to search for PRs: {e}") from e

        results = []
        for pr in pulls:
            location = _match_location(pr, key)
            if location:
                results.append(
                    PRResolution(number=pr.number, title=pr.title or "", branch=pr.head.ref or "", matched_in=location)
                )
        return results
