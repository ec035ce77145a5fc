"""CODEOWNERS lookup: which usernames a repository names as owners.

Every ``@`` followed by a username-shaped token counts, wherever it appears.
Nothing else about the line is interpreted. A team handle ``@org/team`` yields
the organisation name and an e-mail owner ``docs@example.com`` yields the
domain label, so a file that lists only teams produces owners no reviewer
login will match.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from pr_picker.github import NotFoundError
from pr_picker.models import normalize_login

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pr_picker.github import GitHubClient

logger = logging.getLogger(__name__)

# Searched in this order, like GitHub itself.
CODEOWNERS_PATHS = ("CODEOWNERS", "docs/CODEOWNERS", ".github/CODEOWNERS")

# 1-39 alphanumerics, single internal hyphens, no leading or trailing hyphen.
_USERNAME_RE = re.compile(r"@([A-Za-z0-9](?:[A-Za-z0-9]|-(?=[A-Za-z0-9])){0,38})")


class CodeownersParseError(Exception):
    """Raised when a CODEOWNERS file cannot be decoded."""


def extract_usernames(text: str) -> list[str]:
    """Return every ``@username`` mention in order, without the ``@``."""
    return _USERNAME_RE.findall(text)


def merge_usernames(names: Iterable[str]) -> frozenset[str]:
    """Deduplicate usernames case-insensitively; the first spelling seen is kept."""
    by_key: dict[str, str] = {}
    for name in names:
        by_key.setdefault(normalize_login(name), name)
    return frozenset(by_key.values())


def _decode(path: str, content: bytes) -> str:
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError as e:
        msg = f"{path} is not valid UTF-8: {e}"
        raise CodeownersParseError(msg) from e


async def resolve_codeowners(client: GitHubClient, owner: str, repo: str) -> frozenset[str]:
    """Collect the owners named in every CODEOWNERS file of the repository.

    A missing file is skipped; any other host error propagates. An empty
    result means the repository has no ownership policy at all.
    """
    names: list[str] = []
    found = 0
    for path in CODEOWNERS_PATHS:
        try:
            content = await client.get_file_content(owner, repo, path)
        except NotFoundError:
            logger.debug("%s/%s: no %s", owner, repo, path)
            continue
        found += 1
        names.extend(extract_usernames(_decode(path, content)))

    owners = merge_usernames(names)
    logger.debug(
        "%s/%s: %d CODEOWNERS file(s), %d owner(s)", owner, repo, found, len(owners)
    )
    return owners
