import os
from pathlib import Path

"""Global constants and path definitions for config-backup.

This module defines the filesystem layout (adhering to XDG standards where applicable),
application identifiers, and the defaults used when no configuration file exists.
"""

# --- Identity ---
APP_NAME = "config-backup"
"""str: The human-readable application name."""

APP_LABEL = "config-backup-agent"
"""str: The service identifier used for the systemd unit."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "config-backup"
"""Path: The directory for runtime state data (logs, pid, pause marker)."""

LOG_FILE = STATE_DIR / "agent.log"
"""Path: The file path for the daemon process logs."""

PID_FILE = STATE_DIR / "agent.pid"
"""Path: The file path storing the daemon's process ID."""

PAUSE_FILE = STATE_DIR / "paused"
"""Path: Marker file; while it exists, cycles are skipped."""

# --- Configuration Paths ---
CONFIG_DIR: Path = Path.home() / ".config/config-backup"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The main configuration file path."""

# --- Defaults ---
DEFAULT_SOURCE: Path = Path.home() / ".config"
DEFAULT_BACKUP: Path = Path.home() / "backup" / "config"

DEFAULT_DENYLIST = ["discord", "cache"]
"""list[str]: Substrings excluded from the mirror (matched case-insensitively)."""

DEFAULT_INTERVAL = 5 * 3600
"""int: Seconds to sleep between cycles."""

DEFAULT_REMOTE_NAME = "origin"
DEFAULT_BRANCH = "main"

# --- Formats ---
ROTATION_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M"
"""str: Suffix appended to a rotated backup directory (``config-2025-01-31_14-05``)."""

COMMIT_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
COMMIT_MESSAGE_PREFIX = "Backup am"

# --- Git ---
GIT_NOTHING_TO_COMMIT = 1
"""int: Exit status of ``git commit`` when the index matches HEAD."""
