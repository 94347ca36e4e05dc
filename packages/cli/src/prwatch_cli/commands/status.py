"""status command — one fetch, rendered as tables."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from prwatch_core.analyzer import TrendAnalyzer
from prwatch_core.conditions import final_state_label
from prwatch_core.errors import FetchError, ResolutionError
from prwatch_core.gh.pull_request import GitHubFetcher
from prwatch_core.gh.resolver import PRResolver
from prwatch_core.models import CheckConclusion, CheckStatus, ReviewState
from prwatch_core.utils.duration import format_duration
from prwatch_cli.repo import open_repo

console = Console()

_CONCLUSION_STYLE = {
    CheckConclusion.SUCCESS: "green",
    CheckConclusion.SKIPPED: "dim",
    CheckConclusion.NEUTRAL: "dim",
    CheckConclusion.FAILURE: "red",
    CheckConclusion.CANCELLED: "yellow",
}

_REVIEW_STYLE = {
    ReviewState.APPROVED: "green",
    ReviewState.CHANGES_REQUESTED: "red",
    ReviewState.COMMENTED: "yellow",
}


def _check_label(check) -> str:
    if check.conclusion is not None:
        style = _CONCLUSION_STYLE.get(check.conclusion, "white")
        return f"[{style}]{check.conclusion.value}[/{style}]"
    if check.status == CheckStatus.IN_PROGRESS:
        return "[cyan]in progress[/cyan]"
    return "[dim]pending[/dim]"


@click.command("status")
@click.argument("identifier")
@click.option("--repo", default=None, help="GitHub repository in owner/name format. Defaults to the git remote.")
@click.pass_context
def status_cmd(ctx, identifier: str, repo: str | None):
    """Show the current checks, reviews and insights for a pull request."""
    config = ctx.obj["config"]
    gh_repo = open_repo(repo, config)

    try:
        pr_number = PRResolver(gh_repo).resolve(identifier)
    except ResolutionError as e:
        raise click.ClickException(str(e))

    try:
        snapshot = GitHubFetcher(gh_repo).fetch(pr_number)
    except FetchError as e:
        raise click.ClickException(f"Could not fetch PR #{pr_number}: {e}")

    draft = " [dim](draft)[/dim]" if snapshot.is_draft else ""
    console.print(f"[bold]PR #{snapshot.number}[/bold]: {snapshot.title}{draft}")
    console.print(f"State: {final_state_label(snapshot)} | Mergeable: {snapshot.mergeable.value}")
    if snapshot.url:
        console.print(snapshot.url)

    if snapshot.checks:
        table = Table(title="Checks", show_header=True, header_style="bold cyan")
        table.add_column("Check", max_width=50)
        table.add_column("Result", width=14)
        table.add_column("Duration", justify="right", width=10)
        for check in snapshot.checks:
            duration = check.duration
            table.add_row(check.name, _check_label(check), format_duration(duration.total_seconds()) if duration else "")
        console.print(table)
    else:
        console.print("[yellow]No checks reported.[/yellow]")

    if snapshot.reviews:
        table = Table(title="Reviews", show_header=True, header_style="bold cyan")
        table.add_column("Reviewer", width=24)
        table.add_column("State", width=20)
        table.add_column("Submitted", width=20)
        for review in snapshot.reviews:
            style = _REVIEW_STYLE.get(review.state, "white")
            submitted = review.submitted_at.strftime("%Y-%m-%d %H:%M") if review.submitted_at else ""
            table.add_row(review.author, f"[{style}]{review.state.value}[/{style}]", submitted)
        console.print(table)
    elif snapshot.reviewers:
        console.print(f"Awaiting review from: {', '.join(snapshot.reviewers)}")

    insights = TrendAnalyzer().analyze(snapshot)
    for insight in insights:
        console.print(f"  [{insight.kind.value}] {insight.message}", markup=False, highlight=False)
