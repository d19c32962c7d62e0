import datetime
import logging
import os
import re
from pathlib import Path

from .constants import APP_NAME, ROTATION_TIMESTAMP_FORMAT

logger = logging.getLogger(APP_NAME)

_GENERATION_SUFFIX = re.compile(r"-(\d{4}-\d{2}-\d{2}_\d{2}-\d{2})$")


def generation_path(backup_dir: Path, now: datetime.datetime) -> Path:
    """Builds the sibling path a backup directory is rotated to."""
    return backup_dir.with_name(
        f"{backup_dir.name}-{now.strftime(ROTATION_TIMESTAMP_FORMAT)}"
    )


def rotate_backup(
    backup_dir: Path, now: datetime.datetime | None = None
) -> Path | None:
    """Moves the current backup directory out of the way.

    The directory is renamed (never copied) to ``<name>-YYYY-MM-DD_HH-MM`` next
    to itself, so each rotation produces exactly one generation.

    Args:
        backup_dir (Path): The canonical backup directory.
        now (datetime.datetime | None): Timestamp for the suffix. Defaults to
            the current local time.

    Returns:
        Path | None: The generation path, or None if there was nothing to rotate.

    Raises:
        FileExistsError: If a generation with the same timestamp already exists.
        OSError: If the rename fails (cross-device, permissions).
    """
    if not backup_dir.exists():
        return None

    target = generation_path(backup_dir, now or datetime.datetime.now())
    if target.exists():
        raise FileExistsError(f"Rotation target already exists: {target}")

    os.rename(backup_dir, target)
    logger.info(f"ROTATED {backup_dir} -> {target}")
    return target


def list_generations(backup_dir: Path) -> list[tuple[Path, datetime.datetime]]:
    """Lists rotated generations of `backup_dir`, oldest first.

    Args:
        backup_dir (Path): The canonical backup directory.

    Returns:
        list[tuple[Path, datetime.datetime]]: Generation paths with their timestamps.
    """
    parent = backup_dir.parent
    if not parent.is_dir():
        return []

    generations = []
    prefix = f"{backup_dir.name}-"
    for entry in parent.iterdir():
        if not entry.is_dir() or not entry.name.startswith(prefix):
            continue
        match = _GENERATION_SUFFIX.search(entry.name)
        if not match or entry.name[: match.start()] != backup_dir.name:
            continue
        try:
            ts = datetime.datetime.strptime(match.group(1), ROTATION_TIMESTAMP_FORMAT)
        except ValueError:
            continue
        generations.append((entry, ts))

    return sorted(generations, key=lambda g: g[1])
