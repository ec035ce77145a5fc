"""User configuration: load and validate config.toml."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path

from pr_picker.github import API_BASE, REQUEST_TIMEOUT
from pr_picker.selection import DEFAULT_CONCURRENCY


class ConfigError(Exception):
    """Raised when config.toml is malformed or has invalid values."""


@dataclass(frozen=True)
class Settings:
    """Settings for talking to GitHub."""

    api_base: str = API_BASE
    timeout: float = REQUEST_TIMEOUT  # seconds, per request
    concurrency: int = DEFAULT_CONCURRENCY  # pull requests processed at once


_GITHUB_KEYS = {"api_base": str, "timeout": (int, float), "concurrency": int}


def get_config_path() -> Path:
    """Return the path to config.toml, respecting XDG_CONFIG_HOME."""
    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / "pr-picker" / "config.toml"


def load_settings(path: Path) -> Settings:
    """Load settings from a TOML file.

    Returns defaults if the file does not exist.
    Raises ConfigError on parse errors, unknown keys or wrongly typed values.
    """
    if not path.exists():
        return Settings()

    try:
        data = tomllib.loads(path.read_text())
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {path}: {e}"
        raise ConfigError(msg) from e

    github = data.get("github", {})
    if not isinstance(github, dict):
        msg = f"[github] in {path} must be a table"
        raise ConfigError(msg)

    for key, value in github.items():
        expected = _GITHUB_KEYS.get(key)
        if expected is None:
            msg = f"Unknown key '{key}' in [github] of {path}"
            raise ConfigError(msg)
        # bool is an int subclass, but `timeout = true` is still a mistake
        if isinstance(value, bool) or not isinstance(value, expected):
            msg = f"Invalid value for '{key}' in {path}: {value!r}"
            raise ConfigError(msg)

    settings = Settings(
        api_base=github.get("api_base", API_BASE).rstrip("/"),
        timeout=float(github.get("timeout", REQUEST_TIMEOUT)),
        concurrency=github.get("concurrency", DEFAULT_CONCURRENCY),
    )
    if settings.timeout <= 0 or settings.concurrency < 1:
        msg = f"timeout and concurrency in {path} must be positive"
        raise ConfigError(msg)
    return settings
