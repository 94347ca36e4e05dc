"""JiraNotifier — request a ticket transition once a PR's checks go green.

The notifier does not talk to Jira itself. It emits a structured
JiraActionRequest (printed to the console and kept in ``requests``) that an
operator or an automation with Jira credentials can act on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rich.console import Console

from prwatch_core.gh.resolver import extract_ticket_key
from prwatch_notify.base import BaseNotifier

if TYPE_CHECKING:
    from prwatch_core.models import Event, Snapshot

logger = logging.getLogger(__name__)

REVIEW_STATUS = "Review"


@dataclass(frozen=True)
class JiraActionRequest:
    action: str
    ticket_key: str
    target_status: str
    pr_url: str
    comment: str


class JiraNotifier(BaseNotifier):
    """Raises one transition request per PR, the first time its checks pass.

    With no explicit ``ticket_key`` the key is extracted from the PR's branch
    name or title.
    """

    def __init__(self, ticket_key: str | None = None, console: Console | None = None):
        self.ticket_key = ticket_key
        self.requests: list[JiraActionRequest] = []
        self._console = console or Console()
        self._requested: set[int] = set()

    def notify(self, event: Event, pr_number: int) -> None:
        pass

    def notify_summary(self, summary: str, pr_number: int) -> None:
        pass

    def notify_error(self, title: str, message: str, pr_number: int | None) -> None:
        pass

    def notify_checks_passed(self, snapshot: Snapshot) -> None:
        if snapshot.number in self._requested:
            return
        key = self.ticket_key or extract_ticket_key(snapshot.title, snapshot.head_ref)
        if not key:
            logger.debug("No ticket key for PR #%d; skipping transition request", snapshot.number)
            return

        request = JiraActionRequest(
            action="jira-transition",
            ticket_key=key,
            target_status=REVIEW_STATUS,
            pr_url=snapshot.url,
            comment=f"All CI/CD checks passed!\n\nPR ready for review: {snapshot.url}",
        )
        self.requests.append(request)
        self._requested.add(snapshot.number)

        try:
            self._console.print("\n[bold magenta]JIRA ACTION REQUIRED[/bold magenta]")
            self._console.print(f"  Ticket: [bold]{request.ticket_key}[/bold]")
            self._console.print(f"  Action: Transition to {request.target_status}")
            self._console.print(f"  PR URL: {request.pr_url or f'PR #{snapshot.number}'}\n")
        except Exception as e:
            logger.warning("Could not print Jira action request: %s", e)
