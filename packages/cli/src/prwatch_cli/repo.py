"""Work out which repository to watch."""

from __future__ import annotations

import subprocess

import click
from github import GithubException


def detect_repo_from_git() -> str | None:
    """Try to detect the GitHub repo slug from the git remote URL."""
    try:
        result = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    return repo_slug_from_url(result.stdout.strip())


def repo_slug_from_url(url: str) -> str | None:
    # https://github.com/owner/repo.git  →  owner/repo
    # git@github.com:owner/repo.git      →  owner/repo
    if "github.com" not in url:
        return None
    slug = url.split("github.com")[-1].lstrip("/:").removesuffix(".git")
    return slug if "/" in slug else None


def resolve_repo_name(repo_option: str | None, config: dict) -> str | None:
    return repo_option or config.get("repo") or detect_repo_from_git()


def open_repo(repo_option: str | None, config: dict):
    """Return the PyGithub repository to work against, or raise a UsageError."""
    from prwatch_core.gh.pull_request import get_repo

    repo_name = resolve_repo_name(repo_option, config)
    if not repo_name:
        raise click.UsageError("Could not detect the repository. Pass --repo owner/name or set 'repo' in .prwatch.yml.")

    token = config.get("github_token")
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN (or GH_TOKEN), or run `gh auth login`."
        )

    try:
        return get_repo(repo_name, token)
    except GithubException as e:
        raise click.ClickException(f"Could not open repository {repo_name}: {e}") from e
