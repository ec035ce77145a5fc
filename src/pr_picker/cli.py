"""CLI entry point and subcommand definitions."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import random
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from pr_picker.codeowners import CodeownersParseError
from pr_picker.commit_message import CommitParseError
from pr_picker.commits import list_linear_commits, parse_messages
from pr_picker.config import ConfigError, Settings, get_config_path, load_settings
from pr_picker.github import AuthError, GitHubClient, HostError, get_github_token
from pr_picker.selection import select_candidate

if TYPE_CHECKING:
    from pr_picker.models import Commit

# Failures that end a run with "Error: ..." and exit status 1.
FATAL_ERRORS = (
    AuthError,
    HostError,
    httpx.HTTPError,
    CommitParseError,
    CodeownersParseError,
    ConfigError,
)


def _settings(args: argparse.Namespace) -> Settings:
    config_path: Path = args.config if args.config is not None else get_config_path()
    return load_settings(config_path)


def _client(settings: Settings) -> GitHubClient:
    """Build a client from the settings and the user's token."""
    return GitHubClient(
        get_github_token(),
        api_base=settings.api_base,
        timeout=settings.timeout,
    )


async def _fetch_commits(args: argparse.Namespace) -> list[Commit]:
    async with _client(_settings(args)) as client:
        return await list_linear_commits(client, args.owner, args.repo, args.number)


def _cmd_sha(args: argparse.Namespace) -> None:
    """Print the SHA of each non-merge commit of a PR, oldest first."""
    for commit in asyncio.run(_fetch_commits(args)):
        print(commit.sha)


def _cmd_parsed(args: argparse.Namespace) -> None:
    """Print the parsed non-merge commit messages of a PR as JSON."""
    parsed = parse_messages(asyncio.run(_fetch_commits(args)))
    print(json.dumps([p.to_dict() for p in parsed], indent=2))


def _cmd_candidate(args: argparse.Namespace) -> None:
    """Print the selected merge candidate as JSON, or null."""
    settings = _settings(args)
    rng = random.Random(args.seed) if args.seed is not None else None  # noqa: S311

    async def _run() -> dict[str, str | int | bool] | None:
        async with _client(settings) as client:
            candidate = await select_candidate(
                client,
                args.owner,
                args.repo,
                rng=rng,
                concurrency=settings.concurrency,
            )
        return candidate.to_dict() if candidate is not None else None

    print(json.dumps(asyncio.run(_run()), indent=2))


def _add_repo_options(parser: argparse.ArgumentParser, *, with_number: bool) -> None:
    parser.add_argument("-o", "--owner", required=True, help="Repository owner")
    parser.add_argument("-r", "--repo", required=True, help="Repository name")
    if with_number:
        parser.add_argument("-n", "--number", type=int, required=True, help="PR number")


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and dispatch to the appropriate subcommand."""
    parser = argparse.ArgumentParser(
        prog="pr-picker",
        description="Pick a mergeable pull request and inspect PR commit history",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config.toml (default: $XDG_CONFIG_HOME/pr-picker/config.toml)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # sha
    sha_parser = subparsers.add_parser("sha", help="Print linear commit SHAs of a PR")
    _add_repo_options(sha_parser, with_number=True)

    # parsed
    parsed_parser = subparsers.add_parser("parsed", help="Print parsed commit messages as JSON")
    _add_repo_options(parsed_parser, with_number=True)

    # candidate
    candidate_parser = subparsers.add_parser(
        "candidate", help="Print the selected merge candidate as JSON"
    )
    _add_repo_options(candidate_parser, with_number=False)
    candidate_parser.add_argument(
        "--seed", type=int, default=None, help="Seed the tie-break for reproducible picks"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    dispatch = {
        "sha": _cmd_sha,
        "parsed": _cmd_parsed,
        "candidate": _cmd_candidate,
    }
    try:
        dispatch[args.command](args)
    except FATAL_ERRORS as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
