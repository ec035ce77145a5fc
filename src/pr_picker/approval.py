"""Review approval policy, with and without CODEOWNERS."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pr_picker.models import REVIEW_APPROVED, normalize_login

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from pr_picker.models import Review


def latest_review_states(reviews: Iterable[Review]) -> dict[str, str]:
    """Map each author to the state of their last review in listing order.

    Reviews from deleted accounts have no author and are left out.
    """
    latest: dict[str, str] = {}
    for review in sorted(reviews, key=lambda r: r.submitted_order):
        if review.author_login is None:
            continue
        latest[normalize_login(review.author_login)] = review.state
    return latest


def approved_by_owner(reviews: Iterable[Review], codeowners: Iterable[str]) -> bool:
    """True if any owner approved at any point, even if they later reviewed again."""
    owners = {normalize_login(name) for name in codeowners}
    return any(
        r.state == REVIEW_APPROVED
        and r.author_login is not None
        and normalize_login(r.author_login) in owners
        for r in reviews
    )


def approved_by_anyone(reviews: Iterable[Review]) -> bool:
    """True if some author's most recent review is an approval."""
    return any(state == REVIEW_APPROVED for state in latest_review_states(reviews).values())


def is_approved(reviews: Sequence[Review], codeowners: Iterable[str]) -> bool:
    """Decide whether a pull request's reviews satisfy the approval policy.

    With owners, one owner approval anywhere in the history is enough.
    Without owners (no CODEOWNERS file), an author's latest review must be the
    approval: a later review from the same author revokes it.
    """
    owners = frozenset(codeowners)
    if owners:
        return approved_by_owner(reviews, owners)
    return approved_by_anyone(reviews)
