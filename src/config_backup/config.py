import logging
import re
import tomllib
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    CONFIG_FILE,
    DEFAULT_BACKUP,
    DEFAULT_BRANCH,
    DEFAULT_DENYLIST,
    DEFAULT_INTERVAL,
    DEFAULT_REMOTE_NAME,
    DEFAULT_SOURCE,
)

logger = logging.getLogger(APP_NAME)


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '100MB') to bytes."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid size format '{value}'")
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_time(value: int | str) -> int:
    """Converts human-readable time strings (e.g., '5h', '30m') to seconds."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid time format '{value}'")
    if isinstance(value, int):
        return value
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(s|sec|m|min|h|hr|d|day)s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "s": 1,
        "sec": 1,
        "m": 60,
        "min": 60,
        "h": 3600,
        "hr": 3600,
        "d": 86400,
        "day": 86400,
    }
    return int(num * multiplier[unit])


def normalize_terms(terms: list[str]) -> list[str]:
    """Lowercases denylist terms, dropping blanks and duplicates (order kept)."""
    cleaned = [str(t).strip().lower() for t in terms]
    return list(dict.fromkeys(t for t in cleaned if t))


class SyncStrategy(str, Enum):
    """How the backup branch is reconciled with the remote.

    REBASE pulls with rebase (failure tolerated) and pushes normally.
    FORCE resets the local branch and overwrites the remote branch.

    Rotation moves `.git` away with each generation, so every cycle commits
    into a fresh repository unrelated to the remote. FORCE is the default
    because REBASE then conflicts on any changed file.
    """

    REBASE = "rebase"
    FORCE = "force"


@dataclass
class PathsConfig:
    """Filesystem locations.

    Attributes:
        source (Path): The configuration tree to mirror. Never modified.
        backup (Path): The mirror target and git working copy.
    """

    source: Path = DEFAULT_SOURCE
    backup: Path = DEFAULT_BACKUP


@dataclass
class FilterConfig:
    """Mirror exclusion settings.

    Attributes:
        denylist (list[str]): Lowercase substrings; any relative path containing
            one of them is skipped.
    """

    denylist: list[str] = field(default_factory=lambda: list(DEFAULT_DENYLIST))


@dataclass
class RemoteConfig:
    """Push target settings.

    Attributes:
        url (str): The remote repository URL (SSH or HTTPS form).
        name (str): The git remote name.
        branch (str): The branch committed to and pushed.
        strategy (SyncStrategy): Rebase-then-push or force-push.
    """

    url: str = ""
    name: str = DEFAULT_REMOTE_NAME
    branch: str = DEFAULT_BRANCH
    strategy: SyncStrategy = SyncStrategy.FORCE


@dataclass
class DaemonConfig:
    """Scheduler settings.

    Attributes:
        interval (int): Seconds slept between cycles.
        git_timeout (int | None): Per-command timeout for git; None waits forever.
    """

    interval: int = DEFAULT_INTERVAL
    git_timeout: int | None = None


@dataclass
class LimitsConfig:
    """Resource limitation settings.

    Attributes:
        max_log_size (int): Max bytes for log files before rotation.
    """

    max_log_size: int = 5 * 1024 * 1024


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        paths (PathsConfig): Source and backup locations.
        filter (FilterConfig): Denylist settings.
        remote (RemoteConfig): Git remote settings.
        daemon (DaemonConfig): Scheduler settings.
        limits (LimitsConfig): Resource limits.
    """

    paths: PathsConfig = field(default_factory=PathsConfig)
    filter: FilterConfig = field(default_factory=FilterConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    daemon: DaemonConfig = field(default_factory=DaemonConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Loads configuration from disk, applying defaults where necessary.

        Args:
            path (Path | None): An explicit config file. Defaults to CONFIG_FILE.

        Returns:
            Config: The populated configuration object.
        """
        instance = cls()
        config_path = path or CONFIG_FILE
        if config_path.exists():
            instance._merge_from_file(config_path)
        elif path is not None:
            logger.warning(f"Config file {config_path} not found. Using defaults.")
        return instance

    def _merge_from_file(self, path: Path) -> None:
        """Parses a TOML file and merges it into the current instance.

        Args:
            path (Path): Path to the TOML file.
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
            return
        except OSError as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            return

        if "paths" in data:
            self.paths = self._update_dataclass("paths", self.paths, data["paths"])
        if "filter" in data:
            self.filter = self._update_dataclass("filter", self.filter, data["filter"])
        if "remote" in data:
            self.remote = self._update_dataclass("remote", self.remote, data["remote"])
        if "daemon" in data:
            self.daemon = self._update_dataclass("daemon", self.daemon, data["daemon"])
        if "limits" in data:
            self.limits = self._update_dataclass("limits", self.limits, data["limits"])

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: "
                f"{', '.join(sorted(invalid_keys))}. Ignoring."
            )

        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                if k in ["source", "backup"]:
                    filtered_updates[k] = Path(str(v)).expanduser()
                elif k == "denylist":
                    if not isinstance(v, list):
                        raise ValueError(f"Expected a list of strings, got {v!r}")
                    filtered_updates[k] = normalize_terms(v)
                elif k == "strategy":
                    try:
                        filtered_updates[k] = SyncStrategy(str(v).lower())
                    except ValueError:
                        raise ValueError(
                            f"Unknown strategy '{v}' (expected 'rebase' or 'force')"
                        ) from None
                elif k in ["interval", "git_timeout"]:
                    filtered_updates[k] = parse_time(v)
                elif k == "max_log_size":
                    filtered_updates[k] = parse_size(v)
                else:
                    filtered_updates[k] = str(v)
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)

    def validate(self) -> list[str]:
        """Checks the configuration for problems that make a cycle pointless.

        Returns:
            list[str]: Human-readable problems; empty when the config is usable.
        """
        problems = []
        source = self.paths.source.expanduser().resolve()
        backup = self.paths.backup.expanduser().resolve()

        if not self.remote.url:
            problems.append("No remote URL configured ([remote].url).")
        if not source.is_dir():
            problems.append(f"Source directory does not exist: {source}")
        if backup == source or backup.is_relative_to(source):
            problems.append(
                f"Backup directory {backup} is inside the source tree {source}."
            )
        elif source.is_relative_to(backup):
            problems.append(
                f"Source directory {source} is inside the backup directory {backup}."
            )
        if self.daemon.interval <= 0:
            problems.append("[daemon].interval must be positive.")
        if self.daemon.git_timeout is not None and self.daemon.git_timeout <= 0:
            problems.append("[daemon].git_timeout must be positive.")

        return problems
