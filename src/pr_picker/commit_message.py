"""Commit message parser: optional conventional-commit prefix, body, trailer footers."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

BREAKING_CHANGE = "BREAKING CHANGE"

_HEADER_RE = re.compile(
    r"^(?P<type>[A-Za-z][\w-]*)"
    r"(?:\((?P<scope>[^()\s][^()]*)\))?"
    r"(?P<breaking>!)?"
    r": (?P<subject>\S.*)$"
)
# "Change-type: patch", "Signed-off-by: A <a@b>", "Fixes #12", "BREAKING CHANGE: ..."
_FOOTER_RE = re.compile(r"^(?P<key>BREAKING[ -]CHANGE|[A-Za-z][\w-]*)(?::\s| #)(?P<value>.*)$")


class CommitParseError(Exception):
    """Raised when a commit message cannot be parsed."""


@dataclass(frozen=True)
class ParsedCommit:
    """A commit message split into its structured parts."""

    type: str | None
    scope: str | None
    subject: str
    body: str | None = None
    footers: tuple[tuple[str, str], ...] = field(default_factory=tuple)

    @property
    def is_breaking(self) -> bool:
        return any(key == BREAKING_CHANGE for key, _ in self.footers)

    def to_dict(self) -> dict[str, Any]:
        """Return a dict suitable for JSON serialization."""
        return {
            "type": self.type,
            "scope": self.scope,
            "subject": self.subject,
            "body": self.body,
            "footers": [{"key": key, "value": value} for key, value in self.footers],
        }


def _paragraphs(text: str) -> list[str]:
    return [p.strip("\n") for p in re.split(r"\n\s*\n", text) if p.strip()]


def _parse_footers(paragraph: str) -> tuple[tuple[str, str], ...] | None:
    """Return the trailers of a paragraph, or None if any line is not a trailer.

    Lines starting with whitespace continue the previous trailer's value.
    """
    footers: list[tuple[str, str]] = []
    for line in paragraph.splitlines():
        if footers and line[:1].isspace():
            key, value = footers[-1]
            footers[-1] = (key, f"{value}\n{line.strip()}")
            continue
        m = _FOOTER_RE.match(line)
        if m is None:
            return None
        key = m.group("key").replace("BREAKING-CHANGE", BREAKING_CHANGE)
        footers.append((key, m.group("value").strip()))
    return tuple(footers)


def parse_commit_message(message: str) -> ParsedCommit:
    """Parse a header plus optional body and footer block.

    The ``type(scope)!: `` prefix is optional. A header without one keeps
    ``type`` and ``scope`` as None and becomes the subject as a whole.

    Raises CommitParseError on an empty message.
    """
    text = message.replace("\r\n", "\n").strip()
    if not text:
        msg = "Empty commit message"
        raise CommitParseError(msg)

    header, _, rest = text.partition("\n")
    header = header.strip()
    m = _HEADER_RE.match(header)

    paragraphs = _paragraphs(rest)
    footers: tuple[tuple[str, str], ...] = ()
    if paragraphs:
        parsed_footers = _parse_footers(paragraphs[-1])
        if parsed_footers is not None:
            footers = parsed_footers
            paragraphs = paragraphs[:-1]

    body = "\n\n".join(paragraphs) or None
    if m is None:
        return ParsedCommit(type=None, scope=None, subject=header, body=body, footers=footers)

    if m.group("breaking") and not any(key == BREAKING_CHANGE for key, _ in footers):
        footers = (*footers, (BREAKING_CHANGE, m.group("subject")))

    return ParsedCommit(
        type=m.group("type"),
        scope=m.group("scope"),
        subject=m.group("subject").strip(),
        body=body,
        footers=footers,
    )
