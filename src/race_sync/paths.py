"""Locations of the files race_sync reads at startup.

``config.yaml``, ``tracks.yaml``, ``logging.ini`` and the Google service
account key are looked up relative to the checkout, so a cron job started from
any working directory reads the same files. Each can be moved with an
environment variable; relative values are still anchored at the checkout.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from race_sync.errors import ConfigError

CONFIG_FILE_ENV = "RACE_SYNC_CONFIG"
TRACKS_FILE_ENV = "RACE_SYNC_TRACKS"
LOGGING_FILE_ENV = "RACE_SYNC_LOGGING_CONFIG"

ROOT_MARKERS = ("pyproject.toml", "config.yaml", ".git")


def find_repo_root(start: Path | None = None) -> Path:
    current = (start or Path(__file__)).resolve()
    if current.is_file():
        current = current.parent
    for candidate in [current, *current.parents]:
        if any((candidate / marker).exists() for marker in ROOT_MARKERS):
            return candidate
    raise ConfigError(f"No race_sync checkout found above {current}")


def repo_root() -> Path:
    return find_repo_root(Path(__file__))


def resolve_path(value: str | os.PathLike[str], root: Path | None = None) -> Path:
    """Expand ``~`` and anchor relative paths at the checkout."""
    path = Path(value).expanduser()
    if path.is_absolute():
        return path
    return (root or repo_root()) / path


def _configured(env_name: str, default: str, env: Mapping[str, str] | None) -> Path:
    env = os.environ if env is None else env
    return resolve_path(env.get(env_name) or default)


def config_path(env: Mapping[str, str] | None = None) -> Path:
    return _configured(CONFIG_FILE_ENV, "config.yaml", env)


def tracks_path(env: Mapping[str, str] | None = None) -> Path:
    return _configured(TRACKS_FILE_ENV, "tracks.yaml", env)


def logging_config_path(env: Mapping[str, str] | None = None) -> Path:
    return _configured(LOGGING_FILE_ENV, "logging.ini", env)


def credentials_path(credentials_file: str) -> Path:
    """Service account key file named in settings; it must exist."""
    path = resolve_path(credentials_file)
    if not path.is_file():
        raise ConfigError(f"Google credentials file not found: {path}")
    return path
