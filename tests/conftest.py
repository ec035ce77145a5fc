"""Shared fixtures: GitHub client, canned API JSON, mock registration helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import pytest

from pr_picker.github import GitHubClient

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from pytest_httpx import HTTPXMock

OWNER = "acme"
REPO = "widgets"
REPO_API = f"https://api.github.com/repos/{OWNER}/{REPO}"


def rate_limit_headers() -> dict[str, str]:
    return {"X-RateLimit-Remaining": "4900"}


@dataclass
class PullRequestRow:
    """Builder for a pull request and everything fetched to score it."""

    number: int
    rebaseable: bool | None = True
    fork: bool = False
    base_ref: str = "main"
    reviews: list[tuple[str, str]] = field(default_factory=list)  # (login, state)
    required: list[str] = field(default_factory=lambda: ["ci"])
    statuses: list[tuple[str, str]] = field(default_factory=list)  # (context, state)
    check_runs: list[tuple[str, str | None]] = field(default_factory=list)  # (name, conclusion)

    @property
    def head_sha(self) -> str:
        return f"{self.number:04d}" + "a" * 36

    def detail_json(self) -> dict[str, Any]:
        head_repo = f"contributor/{REPO}" if self.fork else f"{OWNER}/{REPO}"
        return {
            "number": self.number,
            "rebaseable": self.rebaseable,
            "head": {
                "sha": self.head_sha,
                "ref": f"feature-{self.number}",
                "repo": {"full_name": head_repo},
            },
            "base": {"ref": self.base_ref, "repo": {"full_name": f"{OWNER}/{REPO}"}},
        }

    @property
    def is_eligible(self) -> bool:
        return self.rebaseable is True and not self.fork


def add_open_pulls(httpx_mock: HTTPXMock, numbers: list[int]) -> None:
    httpx_mock.add_response(
        url=f"{REPO_API}/pulls?state=open&per_page=100",
        json=[{"number": n} for n in numbers],
        headers=rate_limit_headers(),
    )


def add_codeowners(httpx_mock: HTTPXMock, files: dict[str, str]) -> None:
    """Register every CODEOWNERS location: given files with content, the rest 404."""
    for path in ("CODEOWNERS", "docs/CODEOWNERS", ".github/CODEOWNERS"):
        if path in files:
            httpx_mock.add_response(
                url=f"{REPO_API}/contents/{path}",
                content=files[path].encode(),
                headers=rate_limit_headers(),
            )
        else:
            httpx_mock.add_response(
                url=f"{REPO_API}/contents/{path}",
                status_code=404,
                json={"message": "Not Found"},
            )


def add_pull_request(httpx_mock: HTTPXMock, pr: PullRequestRow) -> None:
    """Register the detail fetch and, for eligible PRs, the four scoring fetches."""
    httpx_mock.add_response(
        url=f"{REPO_API}/pulls/{pr.number}",
        json=pr.detail_json(),
        headers=rate_limit_headers(),
    )
    if not pr.is_eligible:
        return
    httpx_mock.add_response(
        url=f"{REPO_API}/pulls/{pr.number}/reviews?per_page=100",
        json=[
            {"id": idx, "user": {"login": login}, "state": state}
            for idx, (login, state) in enumerate(pr.reviews)
        ],
        headers=rate_limit_headers(),
    )
    httpx_mock.add_response(
        url=f"{REPO_API}/branches/{pr.base_ref}/protection/required_status_checks",
        json={"strict": True, "contexts": pr.required, "checks": []},
        headers=rate_limit_headers(),
    )
    httpx_mock.add_response(
        url=f"{REPO_API}/commits/{pr.head_sha}/status?per_page=100",
        json={
            "state": "pending",
            "statuses": [{"context": c, "state": s} for c, s in pr.statuses],
        },
        headers=rate_limit_headers(),
    )
    httpx_mock.add_response(
        url=f"{REPO_API}/commits/{pr.head_sha}/check-runs?per_page=100",
        json={
            "total_count": len(pr.check_runs),
            "check_runs": [
                {
                    "name": name,
                    "status": "completed" if conclusion else "in_progress",
                    "conclusion": conclusion,
                }
                for name, conclusion in pr.check_runs
            ],
        },
        headers=rate_limit_headers(),
    )


def commit_json(sha: str, message: str, parents: int = 1) -> dict[str, Any]:
    return {
        "sha": sha,
        "commit": {"message": message},
        "parents": [{"sha": f"parent{i}"} for i in range(parents)],
    }


@pytest.fixture
async def client() -> AsyncGenerator[GitHubClient]:
    """A client talking to the (mocked) public GitHub API."""
    async with GitHubClient("ghp_test") as c:
        yield c
