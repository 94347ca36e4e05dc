"""Tests for the retry executor and connection health."""

from unittest.mock import MagicMock

import pytest

from prwatch_core.errors import FetchError, RetryExhaustedError
from prwatch_core.retry import Health, RetryExecutor, RetryOptions, classify_health


def _executor(max_retries=2, base_delay=1000, max_delay=60000, multiplier=2):
    delays = []
    options = RetryOptions(
        max_retries=max_retries,
        base_delay=base_delay,
        max_delay=max_delay,
        backoff_multiplier=multiplier,
    )
    return RetryExecutor(options, sleep=delays.append), delays


class TestExecute:
    def test_success_first_try(self):
        executor, delays = _executor()
        assert executor.execute(lambda: "ok", "op") == "ok"
        assert delays == []
        assert executor.health == Health.HEALTHY

    def test_backoff_sequence_then_exhaustion(self):
        executor, delays = _executor()
        operation = MagicMock(side_effect=FetchError("boom"))

        with pytest.raises(RetryExhaustedError) as exc_info:
            executor.execute(operation, "Fetch PR")

        assert delays == [1000, 2000]
        assert operation.call_count == 3
        assert exc_info.value.attempts == 3
        assert exc_info.value.label == "Fetch PR"
        assert isinstance(exc_info.value.last_error, FetchError)
        assert "Fetch PR failed after 3 attempts: boom" in str(exc_info.value)
        assert executor.failure_count == 3
        assert executor.health == Health.UNHEALTHY

    def test_recovers_after_transient_failure(self):
        executor, delays = _executor()
        operation = MagicMock(side_effect=[FetchError("flaky"), "snapshot"])

        assert executor.execute(operation, "op") == "snapshot"
        assert delays == [1000]
        assert executor.failure_count == 0
        assert executor.health == Health.HEALTHY

    def test_delay_capped_at_max(self):
        executor, delays = _executor(max_retries=4, base_delay=1, max_delay=3)
        with pytest.raises(RetryExhaustedError):
            executor.execute(MagicMock(side_effect=OSError("down")), "op")
        assert delays == [1, 2, 3, 3]

    def test_zero_retries_means_single_attempt(self):
        executor, delays = _executor(max_retries=0)
        operation = MagicMock(side_effect=FetchError("boom"))
        with pytest.raises(RetryExhaustedError):
            executor.execute(operation, "op")
        assert operation.call_count == 1
        assert delays == []

    def test_failures_accumulate_across_calls(self):
        executor, _ = _executor(max_retries=0)
        with pytest.raises(RetryExhaustedError):
            executor.execute(MagicMock(side_effect=FetchError("1")), "op")
        assert executor.health == Health.DEGRADED
        with pytest.raises(RetryExhaustedError):
            executor.execute(MagicMock(side_effect=FetchError("2")), "op")
        assert executor.health == Health.DEGRADED
        with pytest.raises(RetryExhaustedError):
            executor.execute(MagicMock(side_effect=FetchError("3")), "op")
        assert executor.failure_count == 3
        assert executor.health == Health.UNHEALTHY

    def test_reset(self):
        executor, _ = _executor(max_retries=0)
        with pytest.raises(RetryExhaustedError):
            executor.execute(MagicMock(side_effect=FetchError("x")), "op")
        executor.reset()
        assert executor.health == Health.HEALTHY


def test_calculate_delay():
    executor, _ = _executor(base_delay=1.0, max_delay=60.0)
    assert [executor.calculate_delay(n) for n in range(7)] == [1.0, 2.0, 4.0, 8.0, 16.0, 32.0, 60.0]


@pytest.mark.parametrize(
    "failures, expected",
    [(0, Health.HEALTHY), (1, Health.DEGRADED), (2, Health.DEGRADED), (3, Health.UNHEALTHY), (9, Health.UNHEALTHY)],
)
def test_classify_health(failures, expected):
    assert classify_health(failures) == expected


def test_default_options():
    options = RetryOptions()
    assert (options.max_retries, options.base_delay, options.max_delay, options.backoff_multiplier) == (5, 1.0, 60.0, 2.0)
