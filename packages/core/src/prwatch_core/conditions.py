"""Stop-condition predicates and the implicit quiescence heuristic."""

from __future__ import annotations

from prwatch_core.models import PASSING_CONCLUSIONS, PRState, ReviewState, Snapshot, StopCondition

_TERMINAL_STATES = (PRState.MERGED, PRState.CLOSED)


def all_checks_passed(snapshot: Snapshot) -> bool:
    """True when every check concluded success, skipped or neutral.

    Vacuously true for a PR with no checks.
    """
    return all(c.conclusion in PASSING_CONCLUSIONS for c in snapshot.checks)


def has_approval(snapshot: Snapshot) -> bool:
    return any(r.state == ReviewState.APPROVED for r in snapshot.reviews)


def should_stop(snapshot: Snapshot, condition: StopCondition | str | None) -> bool:
    """Evaluate a user-declared stop condition against one snapshot."""
    condition = StopCondition(condition) if condition is not None else StopCondition.NONE

    if condition == StopCondition.CHECKS_PASS:
        return all_checks_passed(snapshot)
    if condition == StopCondition.APPROVED:
        return has_approval(snapshot)
    if condition == StopCondition.MERGED:
        return snapshot.state == PRState.MERGED
    if condition == StopCondition.CLOSED:
        # Merging closes the PR too.
        return snapshot.state in _TERMINAL_STATES
    return False


def is_quiescent(snapshot: Snapshot) -> bool:
    """Nothing left to wait for: terminal state, or green checks plus an approval.

    A PR with no checks and no reviews never qualifies.
    """
    if snapshot.state in _TERMINAL_STATES:
        return True
    return all_checks_passed(snapshot) and has_approval(snapshot)


def checks_just_passed(previous: Snapshot | None, current: Snapshot) -> bool:
    """True on the cycle where a non-empty check list first becomes all-passing."""
    if not current.checks or not all_checks_passed(current):
        return False
    if previous is None:
        return True
    return not previous.checks or not all_checks_passed(previous)


def final_state_label(snapshot: Snapshot) -> str:
    if snapshot.state == PRState.MERGED:
        return "Merged"
    if snapshot.state == PRState.CLOSED:
        return "Closed"

    passed = all_checks_passed(snapshot)
    approved = has_approval(snapshot)
    if passed and approved:
        return "Ready to merge"
    if passed:
        return "All checks passed"
    if approved:
        return "Approved (checks pending)"
    return "In progress"
