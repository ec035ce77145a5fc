"""Linear commit history of a pull request."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pr_picker.commit_message import ParsedCommit, parse_commit_message

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from pr_picker.github import GitHubClient
    from pr_picker.models import Commit

logger = logging.getLogger(__name__)


def linear_commits(commits: Iterable[Commit]) -> list[Commit]:
    """Drop merge commits, keeping the order of the rest."""
    return [c for c in commits if not c.is_merge]


async def list_linear_commits(
    client: GitHubClient,
    owner: str,
    repo: str,
    number: int,
) -> list[Commit]:
    """Fetch all commits of a pull request, oldest first, without merge commits."""
    commits = await client.list_pull_request_commits(owner, repo, number)
    linear = linear_commits(commits)
    logger.debug(
        "%s/%s#%d: %d commits, %d merge commits dropped",
        owner,
        repo,
        number,
        len(commits),
        len(commits) - len(linear),
    )
    return linear


def parse_messages(
    commits: Iterable[Commit],
    parser: Callable[[str], ParsedCommit] = parse_commit_message,
) -> list[ParsedCommit]:
    """Parse every commit message in order. A single parse failure fails the whole call."""
    return [parser(c.message) for c in commits]
