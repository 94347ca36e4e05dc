"""Tests for the snapshot data model."""

from datetime import datetime, timedelta, timezone

import pytest

from prwatch_core.models import CheckConclusion, CheckRun, CheckStatus, Snapshot, WatchState

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def test_duplicate_check_names_rejected():
    checks = (CheckRun("build", CheckStatus.PENDING), CheckRun("build", CheckStatus.IN_PROGRESS))
    with pytest.raises(ValueError, match="build"):
        Snapshot(number=1, title="t", checks=checks)


def test_check_lookup_by_name():
    build = CheckRun("build", CheckStatus.PENDING)
    snapshot = Snapshot(number=1, title="t", checks=(build, CheckRun("lint", CheckStatus.PENDING)))
    assert snapshot.check("build") is build
    assert snapshot.check("missing") is None


def test_check_duration():
    check = CheckRun(
        "build",
        CheckStatus.COMPLETED,
        CheckConclusion.SUCCESS,
        started_at=T0,
        completed_at=T0 + timedelta(minutes=3),
    )
    assert check.duration == timedelta(minutes=3)
    assert check.is_finished


def test_check_duration_unknown_without_timestamps():
    assert CheckRun("build", CheckStatus.IN_PROGRESS, started_at=T0).duration is None


def test_snapshots_with_same_content_are_equal():
    a = Snapshot(number=1, title="t", fetched_at=T0)
    b = Snapshot(number=1, title="t", fetched_at=T0)
    assert a == b


def test_enums_compare_to_wire_values():
    assert CheckConclusion.SUCCESS == "success"
    assert CheckStatus("in_progress") is CheckStatus.IN_PROGRESS


def test_watch_state_starts_incomplete():
    state = WatchState(number=7)
    assert state.snapshot is None
    assert state.events == []
    state.mark_complete()
    assert state.is_complete
