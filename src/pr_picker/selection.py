"""Merge candidate selection — score every eligible open PR, pick among the best."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import TYPE_CHECKING

from pr_picker.approval import is_approved
from pr_picker.checks import merge_check_results, score_checks
from pr_picker.codeowners import resolve_codeowners
from pr_picker.models import PullRequestCandidate, SelectionResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pr_picker.github import GitHubClient
    from pr_picker.models import PullRequestDetail

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 5
# Running best starts here; PRs scoring below it are never candidates.
SCORE_FLOOR = 0


def composite_score(*, approved: bool, check_score: int) -> int:
    """Approval doubles the check score (and doubles a negative one, too)."""
    return check_score * 2 if approved else check_score


def rank_candidates(
    scored: Iterable[PullRequestCandidate],
    floor: int = SCORE_FLOOR,
) -> SelectionResult:
    """Keep every candidate tied at the highest score reaching ``floor``."""
    best = floor
    candidates: list[PullRequestCandidate] = []
    for candidate in scored:
        if candidate.score == best:
            candidates.append(candidate)
        elif candidate.score > best:
            best = candidate.score
            candidates = [candidate]
    return SelectionResult(best_score=best, candidates=tuple(candidates))


def pick_candidate(
    result: SelectionResult,
    rng: random.Random | None = None,
) -> PullRequestCandidate | None:
    """Choose uniformly among the tied best candidates; None if there are none."""
    if not result.candidates:
        return None
    chooser = rng if rng is not None else random.Random()  # noqa: S311
    return chooser.choice(result.candidates)


def _first_exception(group: BaseExceptionGroup[BaseException]) -> BaseException:
    """Dig the first real error out of (possibly nested) task group failures."""
    exc: BaseException = group
    while isinstance(exc, BaseExceptionGroup):
        exc = exc.exceptions[0]
    return exc


async def _score_pull_request(
    client: GitHubClient,
    owner: str,
    repo: str,
    detail: PullRequestDetail,
    codeowners: frozenset[str],
) -> PullRequestCandidate:
    """Fetch reviews and checks for one eligible PR and score it.

    The four fetches run concurrently; if one fails the others are cancelled.
    """
    async with asyncio.TaskGroup() as tg:
        reviews = tg.create_task(client.list_reviews(owner, repo, detail.number))
        required = tg.create_task(
            client.get_required_status_checks(owner, repo, detail.base_ref)
        )
        statuses = tg.create_task(client.get_combined_status(owner, repo, detail.head_sha))
        check_runs = tg.create_task(client.list_check_runs(owner, repo, detail.head_sha))

    approved = is_approved(reviews.result(), codeowners)
    found = merge_check_results(statuses.result(), check_runs.result())
    check_score = score_checks(required.result(), found)
    score = composite_score(approved=approved, check_score=check_score)
    logger.debug(
        "%s/%s#%d: approved=%s check_score=%d score=%d",
        owner,
        repo,
        detail.number,
        approved,
        check_score,
        score,
    )
    return PullRequestCandidate(
        number=detail.number,
        head_sha=detail.head_sha,
        base_ref=detail.base_ref,
        rebaseable=detail.rebaseable,
        is_same_repo_head=detail.is_same_repo_head,
        approved=approved,
        check_score=check_score,
        score=score,
    )


async def collect_candidates(
    client: GitHubClient,
    owner: str,
    repo: str,
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> SelectionResult:
    """Score every eligible open pull request and keep the best-scoring ones.

    CODEOWNERS is resolved once, before any per-PR request. Pull requests are
    then processed concurrently (at most ``concurrency`` at a time). Forks and
    non-rebaseable PRs are dropped before scoring. Any failed request aborts
    the whole run: in-flight requests are cancelled and the error propagates.
    """
    numbers = await client.list_open_pull_requests(owner, repo)
    logger.info("%s/%s: %d open pull request(s)", owner, repo, len(numbers))
    codeowners = await resolve_codeowners(client, owner, repo)

    sem = asyncio.Semaphore(concurrency)

    async def _evaluate(number: int) -> PullRequestCandidate | None:
        async with sem:
            detail = await client.get_pull_request(owner, repo, number)
            if not detail.is_eligible:
                logger.debug(
                    "%s/%s#%d: skipped (rebaseable=%s, same_repo=%s)",
                    owner,
                    repo,
                    number,
                    detail.rebaseable,
                    detail.is_same_repo_head,
                )
                return None
            return await _score_pull_request(client, owner, repo, detail, codeowners)

    try:
        async with asyncio.TaskGroup() as tg:
            tasks = [tg.create_task(_evaluate(n)) for n in numbers]
    except BaseExceptionGroup as eg:
        raise _first_exception(eg) from None

    # Fold in listing order so the result does not depend on completion order.
    scored = [c for task in tasks if (c := task.result()) is not None]
    return rank_candidates(scored)


async def select_candidate(
    client: GitHubClient,
    owner: str,
    repo: str,
    *,
    rng: random.Random | None = None,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> PullRequestCandidate | None:
    """Return a uniformly random pick among the top-scoring eligible PRs, or None."""
    result = await collect_candidates(client, owner, repo, concurrency=concurrency)
    logger.info(
        "%s/%s: best score %d shared by %d candidate(s)",
        owner,
        repo,
        result.best_score,
        len(result.candidates),
    )
    return pick_candidate(result, rng)
