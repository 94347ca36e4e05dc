import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from prwatch_core.models import NotifyFilter, StopCondition
from prwatch_core.retry import RetryOptions
from prwatch_core.utils.duration import parse_interval

DEFAULT_RETRY: dict = {
    "max_retries": 5,
    "base_delay": 1.0,  # seconds
    "max_delay": 60.0,
    "backoff_multiplier": 2.0,
}

DEFAULT_CONFIG: dict = {
    "repo": None,  # owner/name; None = detect from the git remote
    "interval": "30s",
    "notify_on": "all",
    "until": None,
    "max_iterations": 200,  # 200 polls at 30s = 100 minutes
    "heartbeat_every": 10,
    "analyze_every": 5,
    "desktop": False,
    "bell": False,
    "jira_ticket": None,
    "retry": DEFAULT_RETRY,
}


def load_config(config_path: str = ".prwatch.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prwatch.yml in the current directory
      3. CLI argument overrides

    The nested ``retry`` mapping is merged key by key so a config file can
    tune one knob without restating the rest.
    """
    config = {**DEFAULT_CONFIG, "retry": dict(DEFAULT_RETRY)}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ValueError(f"{config_path} must contain a mapping of settings")
        retry_overrides = file_config.pop("retry", None) or {}
        if not isinstance(retry_overrides, dict):
            raise ValueError(f"retry in {config_path} must be a mapping, got {retry_overrides!r}")
        config.update(file_config)
        config["retry"].update(retry_overrides)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    config["github_token"] = os.environ.get("GITHUB_TOKEN")

    return config


def _int_setting(config: dict, key: str) -> int:
    value = config.get(key, DEFAULT_CONFIG[key])
    if value is None or isinstance(value, bool):
        raise ValueError(f"{key} must be a positive integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be a positive integer, got {value!r}")


@dataclass(frozen=True)
class WatchOptions:
    """Validated knobs for one watch session."""

    interval: int = 30  # seconds between polls
    notify_on: NotifyFilter = NotifyFilter.ALL
    until: Optional[StopCondition] = None
    max_iterations: int = 200
    heartbeat_every: int = 10
    analyze_every: int = 5

    def __post_init__(self):
        for name in ("interval", "max_iterations", "heartbeat_every", "analyze_every"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
        try:
            object.__setattr__(self, "notify_on", NotifyFilter(self.notify_on))
        except ValueError:
            choices = ", ".join(f.value for f in NotifyFilter)
            raise ValueError(f"Unknown notify filter {self.notify_on!r}. Choose one of: {choices}.")
        if self.until is not None:
            try:
                until = StopCondition(self.until)
            except ValueError:
                choices = ", ".join(c.value for c in StopCondition if c != StopCondition.NONE)
                raise ValueError(f"Unknown stop condition {self.until!r}. Choose one of: {choices}.")
            object.__setattr__(self, "until", None if until == StopCondition.NONE else until)

    @classmethod
    def from_config(cls, config: dict) -> "WatchOptions":
        return cls(
            interval=parse_interval(config.get("interval", DEFAULT_CONFIG["interval"])),
            notify_on=config.get("notify_on") or DEFAULT_CONFIG["notify_on"],
            until=config.get("until"),
            max_iterations=_int_setting(config, "max_iterations"),
            heartbeat_every=_int_setting(config, "heartbeat_every"),
            analyze_every=_int_setting(config, "analyze_every"),
        )


def retry_options_from_config(config: dict) -> RetryOptions:
    return RetryOptions.from_config(config.get("retry"))
