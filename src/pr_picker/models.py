"""Value types shared by the host client and the decision engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Literal, TypeAlias

CheckState: TypeAlias = Literal["success", "pending", "failure", "missing"]

REVIEW_APPROVED = "APPROVED"


@dataclass(frozen=True)
class Commit:
    """A pull request commit as reported by the host."""

    sha: str
    parent_count: int
    message: str

    @property
    def is_merge(self) -> bool:
        return self.parent_count > 1


@dataclass(frozen=True)
class Review:
    """A submitted review. ``submitted_order`` is the position in the host's listing."""

    author_login: str | None  # None when the account was deleted
    state: str  # APPROVED, CHANGES_REQUESTED, COMMENTED, DISMISSED, ...
    submitted_order: int


@dataclass(frozen=True)
class CheckResult:
    """A commit status or check run, normalized to one shape."""

    context: str
    state: CheckState


@dataclass(frozen=True)
class PullRequestDetail:
    """The subset of a pull request's detail needed for candidate selection."""

    number: int
    head_sha: str
    base_ref: str
    rebaseable: bool
    head_repo_full_name: str | None  # None when the head repository was deleted
    base_repo_full_name: str

    @property
    def is_same_repo_head(self) -> bool:
        return (
            self.head_repo_full_name is not None
            and self.head_repo_full_name == self.base_repo_full_name
        )

    @property
    def is_eligible(self) -> bool:
        return self.rebaseable and self.is_same_repo_head


@dataclass(frozen=True)
class PullRequestCandidate:
    """A scored, eligible pull request."""

    number: int
    head_sha: str
    base_ref: str
    rebaseable: bool
    is_same_repo_head: bool
    approved: bool
    check_score: int
    score: int

    def to_dict(self) -> dict[str, str | int | bool]:
        """Return a dict suitable for JSON serialization."""
        return asdict(self)


@dataclass(frozen=True)
class SelectionResult:
    """All candidates sharing the best composite score."""

    best_score: int
    candidates: tuple[PullRequestCandidate, ...] = field(default_factory=tuple)


def normalize_login(login: str) -> str:
    """Canonical form for comparing GitHub usernames, which are case-insensitive."""
    return login.casefold()
