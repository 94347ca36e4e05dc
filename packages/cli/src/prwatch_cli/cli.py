"""CLI entry point for prwatch.

Commands:
  watch    — poll one or more pull requests and report what changes
  status   — one-shot view of a pull request's checks, reviews and insights
  resolve  — list the pull requests that mention a ticket key
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler

from prwatch_cli.commands.resolve import resolve_cmd
from prwatch_cli.commands.status import status_cmd
from prwatch_cli.commands.watch import watch_cmd

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("prwatch"),
    prog_name="prwatch",
)
@click.option(
    "--config",
    "config_path",
    default=".prwatch.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRWATCH_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Watch GitHub pull requests for CI, review and status changes."""
    from prwatch_core.config import load_config
    from prwatch_cli.auth import resolve_github_token

    _configure_logging(verbose)
    ctx.ensure_object(dict)

    try:
        config = load_config(config_path)
    except (ValueError, yaml.YAMLError) as e:
        raise click.ClickException(f"Invalid configuration: {e}")

    # Resolve token early so all subcommands share the same resolution.
    token = resolve_github_token()
    if token:
        config["github_token"] = token

    ctx.obj["config"] = config


main.add_command(watch_cmd)
main.add_command(status_cmd)
main.add_command(resolve_cmd)
