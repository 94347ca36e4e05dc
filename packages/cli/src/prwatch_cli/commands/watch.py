"""watch command — poll pull requests and report every change."""

from __future__ import annotations

import click
from rich.console import Console

from prwatch_core.config import WatchOptions, retry_options_from_config
from prwatch_core.coordinator import watch_many
from prwatch_core.errors import ResolutionError
from prwatch_core.gh.pull_request import GitHubFetcher
from prwatch_core.gh.resolver import PRResolver, extract_ticket_key
from prwatch_core.models import NotifyFilter, StopCondition
from prwatch_core.retry import RetryExecutor
from prwatch_core.watcher import watch_pr
from prwatch_cli.repo import open_repo

console = Console()


def _build_notifier(config: dict, ticket_keys: list[str]):
    """Instantiate the notification sinks enabled in config.

      desktop / bell      → DesktopNotifier
      jira_ticket, or any identifier that was a ticket key → JiraNotifier
      (nothing enabled)   → NoOpNotifier
    """
    from prwatch_notify.noop import NoOpNotifier

    sinks = []
    if config.get("desktop") or config.get("bell"):
        from prwatch_notify.desktop import DesktopNotifier

        sinks.append(DesktopNotifier(desktop=bool(config.get("desktop")), bell=bool(config.get("bell"))))

    jira_ticket = config.get("jira_ticket")
    if jira_ticket or ticket_keys:
        from prwatch_notify.jira import JiraNotifier

        # A single explicit key wins; otherwise each PR's key comes from its branch or title.
        sinks.append(JiraNotifier(ticket_key=jira_ticket, console=console))

    if not sinks:
        return NoOpNotifier()
    if len(sinks) == 1:
        return sinks[0]

    from prwatch_notify.composite import CompositeNotifier

    return CompositeNotifier(sinks)


def _print_line(line: str) -> None:
    console.print(line, markup=False, highlight=False)


@click.command("watch")
@click.argument("identifiers", nargs=-1, required=True)
@click.option("--repo", default=None, help="GitHub repository in owner/name format. Defaults to the git remote.")
@click.option(
    "--notify-on",
    type=click.Choice([f.value for f in NotifyFilter]),
    default=None,
    help="Which events to report. Overrides config file.",
)
@click.option("--interval", default=None, help='Polling interval, e.g. "30s" or "2m". Overrides config file.')
@click.option(
    "--until",
    type=click.Choice([c.value for c in StopCondition]),
    default=None,
    help="Stop as soon as this condition holds. Overrides config file.",
)
@click.option("--max-iterations", type=int, default=None, help="Upper bound on poll cycles. Overrides config file.")
@click.option("--desktop/--no-desktop", default=None, help="Send macOS desktop notifications.")
@click.option("--bell/--no-bell", default=None, help="Ring the terminal bell on important events.")
@click.option("--jira-ticket", default=None, help="Ticket key to request a transition for once checks pass.")
@click.pass_context
def watch_cmd(
    ctx,
    identifiers: tuple[str, ...],
    repo: str | None,
    notify_on: str | None,
    interval: str | None,
    until: str | None,
    max_iterations: int | None,
    desktop: bool | None,
    bell: bool | None,
    jira_ticket: str | None,
):
    """Watch one or more pull requests until they settle.

    IDENTIFIERS are PR numbers (123 or #123) or ticket keys (PROJ-123).
    Several identifiers are watched together in one polling loop.
    """
    overrides = {
        "notify_on": notify_on,
        "interval": interval,
        "until": until,
        "max_iterations": max_iterations,
        "desktop": desktop,
        "bell": bell,
        "jira_ticket": jira_ticket,
    }
    config = {**ctx.obj["config"], **{k: v for k, v in overrides.items() if v is not None}}

    try:
        options = WatchOptions.from_config(config)
        retry_options = retry_options_from_config(config)
    except ValueError as e:
        raise click.UsageError(str(e))

    gh_repo = open_repo(repo, config)

    try:
        pr_numbers = PRResolver(gh_repo).resolve_multiple(identifiers)
    except ResolutionError as e:
        raise click.ClickException(str(e))

    ticket_keys = [i for i in identifiers if extract_ticket_key(i.upper())]
    notifier = _build_notifier(config, ticket_keys)
    fetcher = GitHubFetcher(gh_repo)
    retry = RetryExecutor(retry_options)

    try:
        if len(pr_numbers) == 1:
            watch_pr(pr_numbers[0], fetcher, options, notifier=notifier, retry=retry, echo=_print_line)
        else:
            watch_many(pr_numbers, fetcher, options, notifier=notifier, retry=retry, echo=_print_line)
    finally:
        notifier.close()
