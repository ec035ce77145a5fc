"""Required status check scoring."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pr_picker.models import CheckResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pr_picker.models import CheckState

SCORE_SUCCESS = 1
SCORE_PENDING = 0
SCORE_FAILURE = -1  # also for a required context nobody reported


def normalize_state(raw: str | None) -> CheckState:
    """Fold commit-status states and check-run conclusions into one vocabulary.

    A check run without a conclusion is still queued or running. Every
    terminal outcome other than success (error, cancelled, timed_out,
    neutral, skipped, action_required, stale) counts as a failure.
    """
    if raw is None:
        return "pending"
    value = raw.lower()
    if value == "success":
        return "success"
    if value == "pending":
        return "pending"
    return "failure"


def merge_check_results(
    statuses: Iterable[dict[str, Any]],
    check_runs: Iterable[dict[str, Any]],
) -> list[CheckResult]:
    """Union commit statuses and check runs; a check run's conclusion becomes its state."""
    results = [
        CheckResult(context=status["context"], state=normalize_state(status["state"]))
        for status in statuses
    ]
    results.extend(
        CheckResult(context=run["name"], state=normalize_state(run.get("conclusion")))
        for run in check_runs
    )
    return results


def score_checks(required: Iterable[str], found: Iterable[CheckResult]) -> int:
    """Sum +1 / 0 / -1 over the distinct required contexts.

    Each context is matched by exact name against the first result reported
    for it; a context without any result scores as a failure.
    """
    by_context: dict[str, CheckResult] = {}
    for result in found:
        by_context.setdefault(result.context, result)

    score = 0
    for context in dict.fromkeys(required):
        result = by_context.get(context)
        state = result.state if result is not None else "missing"
        if state == "success":
            score += SCORE_SUCCESS
        elif state == "pending":
            score += SCORE_PENDING
        else:
            score += SCORE_FAILURE
    return score
