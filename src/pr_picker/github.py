"""GitHub API client — pagination, rate limits, typed fetches for PR selection."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from typing import TYPE_CHECKING, Any, Self
from urllib.parse import quote

import httpx

from pr_picker.models import Commit, PullRequestDetail, Review

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)

API_BASE = "https://api.github.com"
API_VERSION = "2022-11-28"
REQUEST_TIMEOUT = 60.0  # seconds, per request
PER_PAGE = 100
RATE_LIMIT_WARNING_THRESHOLD = 100

RAW_MEDIA_TYPE = "application/vnd.github.raw+json"


class AuthError(Exception):
    """Raised when no GitHub token can be obtained."""


class HostError(Exception):
    """Raised when the GitHub API answers with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(HostError):
    """Raised when the GitHub API answers 404."""


class RateLimitError(HostError):
    """Raised when GitHub API rate limit is exceeded."""


def get_github_token() -> str:
    """Obtain a GitHub token from ``GITHUB_TOKEN``, falling back to `gh auth token`."""
    token = os.environ.get("GITHUB_TOKEN", "").strip()
    if token:
        return token
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],  # noqa: S607
            capture_output=True,
            text=True,
            check=False,
        )
    except FileNotFoundError as e:
        msg = "GITHUB_TOKEN is not set and gh CLI not found"
        raise AuthError(msg) from e
    if result.returncode != 0:
        msg = "GITHUB_TOKEN is not set and gh CLI not authenticated. Run: gh auth login"
        raise AuthError(msg)
    token = result.stdout.strip()
    if not token:
        msg = "gh auth token returned empty output"
        raise AuthError(msg)
    return token


def _headers(token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": API_VERSION,
    }


def _check_rate_limit(response: httpx.Response) -> None:
    """Log a warning if rate limit is low, raise if exceeded."""
    remaining = response.headers.get("X-RateLimit-Remaining")
    if remaining is not None:
        remaining_int = int(remaining)
        if remaining_int < RATE_LIMIT_WARNING_THRESHOLD:
            logger.warning("GitHub API rate limit low: %d remaining", remaining_int)
    if response.status_code in (
        httpx.codes.FORBIDDEN,
        httpx.codes.TOO_MANY_REQUESTS,
    ) and ("rate limit" in response.text.lower() or remaining == "0"):
        msg = "GitHub API rate limit exceeded"
        raise RateLimitError(msg, response.status_code)


def _raise_for_status(response: httpx.Response) -> None:
    """Map non-2xx responses onto the host error taxonomy."""
    if response.is_success:
        return
    url = response.request.url
    if response.status_code == httpx.codes.NOT_FOUND:
        msg = f"Not found: {url}"
        raise NotFoundError(msg, response.status_code)
    msg = f"GitHub API error: HTTP {response.status_code} for {url}: {response.text[:200]}"
    raise HostError(msg, response.status_code)


def _parse_next_link(link_header: str) -> str | None:
    """Extract the 'next' URL from a GitHub Link header."""
    match = re.search(r'<([^>]+)>;\s*rel="next"', link_header)
    return match.group(1) if match else None


# --- Parsers ---


def _login(user: dict[str, Any] | None) -> str | None:
    return user["login"] if user else None


def parse_commit(raw: dict[str, Any]) -> Commit:
    """Parse a REST pull request commit object."""
    return Commit(
        sha=raw["sha"],
        parent_count=len(raw.get("parents") or []),
        message=raw["commit"]["message"],
    )


def parse_reviews(raw_reviews: list[dict[str, Any]]) -> list[Review]:
    """Parse REST reviews, numbering them in listing (chronological) order."""
    return [
        Review(author_login=_login(r.get("user")), state=r["state"], submitted_order=idx)
        for idx, r in enumerate(raw_reviews)
    ]


def parse_pull_request(raw: dict[str, Any]) -> PullRequestDetail:
    """Parse a REST pull request detail object.

    ``rebaseable`` is null while GitHub is still computing mergeability; that
    counts as not rebaseable. ``head.repo`` is null when the fork was deleted.
    """
    head_repo = raw["head"].get("repo")
    return PullRequestDetail(
        number=raw["number"],
        head_sha=raw["head"]["sha"],
        base_ref=raw["base"]["ref"],
        rebaseable=raw.get("rebaseable") is True,
        head_repo_full_name=head_repo["full_name"] if head_repo else None,
        base_repo_full_name=raw["base"]["repo"]["full_name"],
    )


def parse_required_contexts(raw: dict[str, Any]) -> tuple[str, ...]:
    """Collect required contexts from both the legacy and the app-aware fields."""
    contexts: list[str] = list(raw.get("contexts") or [])
    contexts.extend(check["context"] for check in raw.get("checks") or [])
    return tuple(dict.fromkeys(contexts))


class GitHubClient:
    """Authenticated REST client. One instance per invocation, passed explicitly.

    Use as an async context manager so the underlying connection pool is closed.
    """

    def __init__(
        self,
        token: str,
        *,
        api_base: str = API_BASE,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self._http = httpx.AsyncClient(
            base_url=api_base,
            headers=_headers(token),
            timeout=timeout,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _get(
        self,
        url: str,
        *,
        params: dict[str, str | int] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        response = await self._http.get(url, params=params, headers=headers)
        _check_rate_limit(response)
        _raise_for_status(response)
        return response

    async def get_json(self, path: str) -> Any:
        """GET a single (non-paginated) resource."""
        response = await self._get(path)
        return response.json()

    async def paginate(
        self,
        path: str,
        *,
        params: dict[str, str | int] | None = None,
        item_key: str | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch every page of a list endpoint and return all items in order.

        Follows the Link header until no ``rel="next"`` remains; the result is
        only returned once the last page has been read. ``item_key`` names the
        list inside wrapped responses such as ``{"check_runs": [...]}``.
        """
        items: list[dict[str, Any]] = []
        first_params: dict[str, str | int] = {"per_page": PER_PAGE, **(params or {})}
        next_url: str | None = path
        is_first = True
        while next_url:
            # Pagination URLs have params baked in; passing params again would strip them.
            response = await self._get(next_url, params=first_params if is_first else None)
            is_first = False
            body = response.json()
            items.extend(body[item_key] if item_key is not None else body)
            next_url = _parse_next_link(response.headers.get("Link", ""))
        logger.debug("Fetched %d items from %s", len(items), path)
        return items

    # --- Typed fetches ---

    async def list_open_pull_requests(self, owner: str, repo: str) -> list[int]:
        """Return the numbers of all open pull requests."""
        pulls = await self.paginate(f"/repos/{owner}/{repo}/pulls", params={"state": "open"})
        return [p["number"] for p in pulls]

    async def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequestDetail:
        raw = await self.get_json(f"/repos/{owner}/{repo}/pulls/{number}")
        return parse_pull_request(raw)

    async def list_pull_request_commits(
        self, owner: str, repo: str, number: int
    ) -> list[Commit]:
        raw = await self.paginate(f"/repos/{owner}/{repo}/pulls/{number}/commits")
        return [parse_commit(c) for c in raw]

    async def list_reviews(self, owner: str, repo: str, number: int) -> list[Review]:
        raw = await self.paginate(f"/repos/{owner}/{repo}/pulls/{number}/reviews")
        return parse_reviews(raw)

    async def get_required_status_checks(
        self, owner: str, repo: str, branch: str
    ) -> tuple[str, ...]:
        """Return the contexts the branch protection rule requires."""
        raw = await self.get_json(
            f"/repos/{owner}/{repo}/branches/{quote(branch, safe='')}"
            "/protection/required_status_checks"
        )
        return parse_required_contexts(raw)

    async def get_combined_status(self, owner: str, repo: str, ref: str) -> list[dict[str, Any]]:
        """Return the ``statuses`` of the combined commit status for a ref.

        The combined status endpoint paginates its statuses like a list endpoint.
        """
        return await self.paginate(
            f"/repos/{owner}/{repo}/commits/{ref}/status", item_key="statuses"
        )

    async def list_check_runs(self, owner: str, repo: str, ref: str) -> list[dict[str, Any]]:
        return await self.paginate(
            f"/repos/{owner}/{repo}/commits/{ref}/check-runs", item_key="check_runs"
        )

    async def get_file_content(self, owner: str, repo: str, path: str) -> bytes:
        """Return the raw bytes of a file on the default branch.

        Raises NotFoundError when the file does not exist.
        """
        response = await self._get(
            f"/repos/{owner}/{repo}/contents/{path}",
            headers={"Accept": RAW_MEDIA_TYPE},
        )
        return response.content
