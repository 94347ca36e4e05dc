"""resolve command — show which pull requests mention a ticket key."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from prwatch_core.errors import ResolutionError
from prwatch_core.gh.resolver import PRResolver
from prwatch_cli.repo import open_repo

console = Console()


@click.command("resolve")
@click.argument("ticket")
@click.option("--repo", default=None, help="GitHub repository in owner/name format. Defaults to the git remote.")
@click.pass_context
def resolve_cmd(ctx, ticket: str, repo: str | None):
    """List the recent pull requests whose branch, title or body mention TICKET."""
    gh_repo = open_repo(repo, ctx.obj["config"])

    try:
        matches = PRResolver(gh_repo).find_all_for_ticket(ticket)
    except ResolutionError as e:
        raise click.ClickException(str(e))

    if not matches:
        console.print(f"[yellow]No pull requests found for {ticket}.[/yellow]")
        return

    table = Table(title=f"Pull requests for {ticket.upper()}", show_header=True, header_style="bold cyan")
    table.add_column("PR", style="bold", width=8)
    table.add_column("Title", max_width=50)
    table.add_column("Branch", max_width=40)
    table.add_column("Matched In", width=10)
    for match in matches:
        table.add_row(f"#{match.number}", match.title, match.branch, match.matched_in)

    console.print(table)
