"""Retry with exponential backoff and a running health classification.

One executor owns one consecutive-failure counter. The counter is NOT reset
at the start of execute(); only a success resets it. Health degrades
across poll cycles rather than just within a single call. The watch loops use
Health.UNHEALTHY as the signal to give up on the session.

Delays are in seconds when the default ``time.sleep`` is used; the backoff
formula itself does not care about units.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, TypeVar

from prwatch_core.errors import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DEGRADED_MAX_FAILURES = 2


class Health(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass(frozen=True)
class RetryOptions:
    max_retries: int = 5
    base_delay: float = 1.0
    max_delay: float = 60.0
    backoff_multiplier: float = 2.0

    @classmethod
    def from_config(cls, retry_config: dict | None) -> RetryOptions:
        retry_config = retry_config or {}
        if not isinstance(retry_config, dict):
            raise ValueError(f"retry settings must be a mapping, got {retry_config!r}")
        defaults = cls()
        try:
            options = cls(
                max_retries=int(retry_config.get("max_retries", defaults.max_retries)),
                base_delay=float(retry_config.get("base_delay", defaults.base_delay)),
                max_delay=float(retry_config.get("max_delay", defaults.max_delay)),
                backoff_multiplier=float(retry_config.get("backoff_multiplier", defaults.backoff_multiplier)),
            )
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid retry settings {retry_config!r}: {e}") from e
        if options.max_retries < 0:
            raise ValueError(f"retry.max_retries must be >= 0, got {options.max_retries}")
        if options.base_delay < 0 or options.max_delay < 0:
            raise ValueError("retry delays must not be negative")
        return options


def classify_health(consecutive_failures: int) -> Health:
    if consecutive_failures == 0:
        return Health.HEALTHY
    if consecutive_failures <= _DEGRADED_MAX_FAILURES:
        return Health.DEGRADED
    return Health.UNHEALTHY


class RetryExecutor:
    """Runs a fallible operation up to ``max_retries + 1`` times."""

    def __init__(self, options: RetryOptions | None = None, sleep: Callable[[float], None] = time.sleep):
        self.options = options or RetryOptions()
        self._sleep = sleep
        self._consecutive_failures = 0

    @property
    def failure_count(self) -> int:
        return self._consecutive_failures

    @property
    def health(self) -> Health:
        return classify_health(self._consecutive_failures)

    def reset(self) -> None:
        self._consecutive_failures = 0

    def calculate_delay(self, attempt: int) -> float:
        """Delay before retrying after the 0-indexed ``attempt`` failed."""
        delay = self.options.base_delay * self.options.backoff_multiplier**attempt
        return min(delay, self.options.max_delay)

    def execute(self, operation: Callable[[], T], label: str) -> T:
        total_attempts = self.options.max_retries + 1
        last_error: Exception | None = None

        for attempt in range(total_attempts):
            try:
                result = operation()
            except Exception as e:
                last_error = e
                self._consecutive_failures += 1
                if attempt == total_attempts - 1:
                    break
                delay = self.calculate_delay(attempt)
                logger.warning(
                    "%s failed (attempt %d/%d): %s. Retrying in %ss...",
                    label,
                    attempt + 1,
                    total_attempts,
                    e,
                    delay,
                )
                self._sleep(delay)
            else:
                self._consecutive_failures = 0
                return result

        logger.error("%s failed after %d attempts: %s", label, total_attempts, last_error)
        raise RetryExhaustedError(label, total_attempts, last_error) from last_error
