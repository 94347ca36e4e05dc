"""Tests for the CLI entry point."""

import subprocess
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from click.testing import CliRunner

from prwatch_cli.cli import main
from prwatch_cli.commands.watch import _build_notifier
from prwatch_core.config import DEFAULT_CONFIG, DEFAULT_RETRY
from prwatch_core.models import CheckConclusion, CheckRun, CheckStatus, NotifyFilter, Snapshot, StopCondition
from prwatch_notify.composite import CompositeNotifier
from prwatch_notify.desktop import DesktopNotifier
from prwatch_notify.jira import JiraNotifier
from prwatch_notify.noop import NoOpNotifier


def _make_config(github_token="tok", repo="acme/api", **overrides):
    config = {**DEFAULT_CONFIG, "retry": dict(DEFAULT_RETRY), "github_token": github_token, "repo": repo}
    config.update(overrides)
    return config


def _pull(number, title="", branch="", body=""):
    pr = MagicMock()
    pr.number = number
    pr.title = title
    pr.head.ref = branch
    pr.body = body
    return pr


def _patch_common(mocker, config=None, token="tok", pulls=()):
    """Patch load_config, resolve_github_token, and get_repo for most tests."""
    cfg = config or _make_config()
    mocker.patch("prwatch_core.config.load_config", return_value=cfg)
    mocker.patch("prwatch_cli.auth.resolve_github_token", return_value=token)
    mock_repo = MagicMock()
    mock_repo.get_pulls.return_value = list(pulls)
    mocker.patch("prwatch_core.gh.pull_request.get_repo", return_value=mock_repo)
    return cfg, mock_repo


class TestCLIValidation:
    def test_missing_github_token(self, mocker):
        _patch_common(mocker, config=_make_config(github_token=None), token=None)

        result = CliRunner().invoke(main, ["watch", "123"])
        assert result.exit_code != 0
        assert "token" in result.output.lower()

    def test_missing_repo(self, mocker):
        _patch_common(mocker, config=_make_config(repo=None))
        mocker.patch("prwatch_cli.repo.detect_repo_from_git", return_value=None)

        result = CliRunner().invoke(main, ["watch", "123"])
        assert result.exit_code != 0
        assert "--repo" in result.output

    def test_identifier_required(self, mocker):
        _patch_common(mocker)

        result = CliRunner().invoke(main, ["watch"])
        assert result.exit_code != 0

    def test_invalid_max_iterations(self, mocker):
        _patch_common(mocker)

        result = CliRunner().invoke(main, ["watch", "123", "--max-iterations", "0"])
        assert result.exit_code == 2
        assert "max_iterations" in result.output

    def test_invalid_notify_filter(self, mocker):
        _patch_common(mocker)

        result = CliRunner().invoke(main, ["watch", "123", "--notify-on", "everything"])
        assert result.exit_code == 2

    def test_malformed_config_file(self, tmp_path):
        cfg = tmp_path / ".prwatch.yml"
        cfg.write_text("retry: 3\n")

        result = CliRunner().invoke(main, ["--config", str(cfg), "watch", "123"])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output
        assert "Traceback" not in result.output


class TestWatchCommand:
    def test_single_pr_uses_watch_pr(self, mocker):
        _patch_common(mocker)
        mock_watch = mocker.patch("prwatch_cli.commands.watch.watch_pr", return_value="")

        result = CliRunner().invoke(
            main, ["watch", "#123", "--interval", "2m", "--until", "checks-pass", "--notify-on", "checks"]
        )

        assert result.exit_code == 0, result.output
        args, kwargs = mock_watch.call_args
        assert args[0] == 123
        options = args[2]
        assert options.interval == 120
        assert options.until == StopCondition.CHECKS_PASS
        assert options.notify_on == NotifyFilter.CHECKS
        assert isinstance(kwargs["notifier"], NoOpNotifier)
        assert kwargs["retry"].options.max_retries == 5
        assert callable(kwargs["echo"])

    def test_several_prs_use_watch_many(self, mocker):
        _patch_common(mocker)
        mock_watch = mocker.patch("prwatch_cli.commands.watch.watch_many", return_value="")

        result = CliRunner().invoke(main, ["watch", "1", "2"])

        assert result.exit_code == 0, result.output
        assert mock_watch.call_args[0][0] == [1, 2]

    def test_ticket_key_resolved_and_jira_enabled(self, mocker):
        _patch_common(mocker, pulls=[_pull(55, branch="feature/TAK-1680-login")])
        mock_watch = mocker.patch("prwatch_cli.commands.watch.watch_pr", return_value="")

        result = CliRunner().invoke(main, ["watch", "TAK-1680"])

        assert result.exit_code == 0, result.output
        assert mock_watch.call_args[0][0] == 55
        assert isinstance(mock_watch.call_args[1]["notifier"], JiraNotifier)

    def test_unresolved_ticket(self, mocker):
        _patch_common(mocker, pulls=[_pull(55, title="Unrelated")])
        mock_watch = mocker.patch("prwatch_cli.commands.watch.watch_pr", return_value="")

        result = CliRunner().invoke(main, ["watch", "TAK-404"])

        assert result.exit_code == 1
        assert "Could not find PR for ticket TAK-404" in result.output
        mock_watch.assert_not_called()

    def test_desktop_flag(self, mocker):
        _patch_common(mocker)
        mock_watch = mocker.patch("prwatch_cli.commands.watch.watch_pr", return_value="")

        result = CliRunner().invoke(main, ["watch", "5", "--desktop", "--bell"])

        assert result.exit_code == 0, result.output
        notifier = mock_watch.call_args[1]["notifier"]
        assert isinstance(notifier, DesktopNotifier)
        assert notifier.bell is True

    def test_config_file_settings_used(self, mocker):
        _patch_common(mocker, config=_make_config(interval="45s", until="merged"))
        mock_watch = mocker.patch("prwatch_cli.commands.watch.watch_pr", return_value="")

        CliRunner().invoke(main, ["watch", "5"])

        options = mock_watch.call_args[0][2]
        assert options.interval == 45
        assert options.until == StopCondition.MERGED

    def test_report_lines_echoed(self, mocker):
        _patch_common(mocker)

        def fake_watch(pr_number, fetcher, options, notifier=None, retry=None, echo=None):
            echo("Watching PR #5")
            return "Watching PR #5"

        mocker.patch("prwatch_cli.commands.watch.watch_pr", side_effect=fake_watch)

        result = CliRunner().invoke(main, ["watch", "5"])
        assert "Watching PR #5" in result.output

    def test_notifier_closed(self, mocker):
        _patch_common(mocker)
        notifier = MagicMock()
        mocker.patch("prwatch_cli.commands.watch._build_notifier", return_value=notifier)
        mocker.patch("prwatch_cli.commands.watch.watch_pr", return_value="")

        CliRunner().invoke(main, ["watch", "5"])
        notifier.close.assert_called_once()


class TestStatusCommand:
    def test_shows_checks_and_insights(self, mocker):
        _patch_common(mocker)
        snapshot = Snapshot(
            number=5,
            title="Add login",
            checks=(CheckRun("build", CheckStatus.COMPLETED, CheckConclusion.SUCCESS),),
            fetched_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
        )
        fetcher = mocker.patch("prwatch_cli.commands.status.GitHubFetcher")
        fetcher.return_value.fetch.return_value = snapshot

        result = CliRunner().invoke(main, ["status", "5"])

        assert result.exit_code == 0, result.output
        assert "PR #5" in result.output
        assert "build" in result.output
        assert "All checks passed! Ready for review." in result.output

    def test_fetch_failure(self, mocker):
        from prwatch_core.errors import FetchError

        _patch_common(mocker)
        fetcher = mocker.patch("prwatch_cli.commands.status.GitHubFetcher")
        fetcher.return_value.fetch.side_effect = FetchError("502")

        result = CliRunner().invoke(main, ["status", "5"])
        assert result.exit_code == 1
        assert "Could not fetch PR #5" in result.output


class TestResolveCommand:
    def test_lists_matches(self, mocker):
        _patch_common(mocker, pulls=[_pull(9, title="TAK-7 fix", branch="tak-7")])

        result = CliRunner().invoke(main, ["resolve", "TAK-7"])

        assert result.exit_code == 0, result.output
        assert "#9" in result.output
        assert "branch" in result.output

    def test_no_matches(self, mocker):
        _patch_common(mocker, pulls=[])

        result = CliRunner().invoke(main, ["resolve", "TAK-7"])
        assert "No pull requests found" in result.output


# ---------------------------------------------------------------------------
# auth.py
# ---------------------------------------------------------------------------


class TestResolveGithubToken:
    def test_returns_env_var_when_set(self, monkeypatch):
        from prwatch_cli.auth import resolve_github_token

        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        assert resolve_github_token() == "env-token"

    def test_gh_token_env_var(self, monkeypatch):
        from prwatch_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.setenv("GH_TOKEN", "gh-env-token")
        assert resolve_github_token() == "gh-env-token"

    def test_falls_back_to_gh_cli(self, monkeypatch):
        from prwatch_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="gh-token\n")
            result = resolve_github_token()
        assert result == "gh-token"

    def test_returns_none_when_gh_not_installed(self, monkeypatch):
        from prwatch_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        with patch("subprocess.run", side_effect=FileNotFoundError):
            result = resolve_github_token()
        assert result is None

    def test_returns_none_when_gh_times_out(self, monkeypatch):
        from prwatch_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="gh", timeout=5)):
            result = resolve_github_token()
        assert result is None

    def test_returns_none_when_gh_returns_error(self, monkeypatch):
        from prwatch_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=1, stdout="")
            result = resolve_github_token()
        assert result is None


# ---------------------------------------------------------------------------
# repo.py
# ---------------------------------------------------------------------------


class TestRepoDetection:
    def test_https_remote(self):
        from prwatch_cli.repo import repo_slug_from_url

        assert repo_slug_from_url("https://github.com/acme/api.git") == "acme/api"

    def test_ssh_remote(self):
        from prwatch_cli.repo import repo_slug_from_url

        assert repo_slug_from_url("git@github.com:acme/api.git") == "acme/api"

    def test_non_github_remote(self):
        from prwatch_cli.repo import repo_slug_from_url

        assert repo_slug_from_url("https://gitlab.com/acme/api.git") is None

    def test_option_beats_config_and_git(self, mocker):
        from prwatch_cli.repo import resolve_repo_name

        detect = mocker.patch("prwatch_cli.repo.detect_repo_from_git", return_value="from/git")
        assert resolve_repo_name("from/option", {"repo": "from/config"}) == "from/option"
        assert resolve_repo_name(None, {"repo": "from/config"}) == "from/config"
        assert resolve_repo_name(None, {}) == "from/git"
        assert detect.call_count == 1

    def test_detect_from_git_remote(self):
        from prwatch_cli.repo import detect_repo_from_git

        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="git@github.com:acme/api.git\n")
            assert detect_repo_from_git() == "acme/api"


# ---------------------------------------------------------------------------
# _build_notifier
# ---------------------------------------------------------------------------


class TestBuildNotifier:
    def test_returns_noop_by_default(self):
        assert isinstance(_build_notifier(_make_config(), []), NoOpNotifier)

    def test_desktop(self):
        notifier = _build_notifier(_make_config(desktop=True), [])
        assert isinstance(notifier, DesktopNotifier)
        assert notifier.desktop is True
        assert notifier.bell is False

    def test_bell_only(self):
        notifier = _build_notifier(_make_config(bell=True), [])
        assert isinstance(notifier, DesktopNotifier)
        assert notifier.desktop is False

    def test_jira_ticket(self):
        notifier = _build_notifier(_make_config(jira_ticket="OPS-1"), [])
        assert isinstance(notifier, JiraNotifier)
        assert notifier.ticket_key == "OPS-1"

    def test_several_sinks_are_combined(self):
        notifier = _build_notifier(_make_config(desktop=True), ["TAK-1"])
        assert isinstance(notifier, CompositeNotifier)
        assert [type(s) for s in notifier.sinks] == [DesktopNotifier, JiraNotifier]
