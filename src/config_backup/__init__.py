"""Config Backup: periodic mirroring of a configuration directory into git.

This package provides the command-line interface, the background scheduler,
and the mirror, rotation and git reconciliation steps it runs each cycle.
"""

from . import (
    cli,
    config,
    constants,
    daemon,
    filters,
    git_wrapper,
    mirror,
    reconciler,
    rotation,
    service,
)

__all__ = [
    "cli",
    "config",
    "constants",
    "daemon",
    "filters",
    "git_wrapper",
    "mirror",
    "reconciler",
    "rotation",
    "service",
]
