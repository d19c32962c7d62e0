import logging
import os
import shutil
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

from .constants import APP_NAME
from .filters import is_denied

logger = logging.getLogger(APP_NAME)


class BackupCancelled(Exception):
    """Raised when a stop request arrives while a backup step is running."""


@dataclass
class MirrorStats:
    """Counters for a single mirror pass.

    Attributes:
        copied (int): Files written to the destination.
        skipped (int): Files excluded by the denylist.
    """

    copied: int = 0
    skipped: int = 0


def _raise(error: OSError) -> None:
    raise error


def iter_files(source: Path) -> Iterator[Path]:
    """Lazily yields every regular file below `source`.

    Symlinks to files are yielded (their content gets copied); symlinked
    directories are not descended into. Traversal errors propagate.

    Args:
        source (Path): The root directory to walk.

    Yields:
        Path: Absolute paths of regular files.
    """
    for dirpath, _dirnames, filenames in os.walk(source, onerror=_raise):
        base = Path(dirpath)
        for name in filenames:
            path = base / name
            if path.is_file():
                yield path


def mirror_tree(
    source: Path,
    dest: Path,
    denylist: Iterable[str],
    stop: threading.Event | None = None,
) -> MirrorStats:
    """Copies every non-denied file under `source` to the same relative path in `dest`.

    Existing destination files are overwritten; nothing in `dest` is ever
    deleted, so files removed from `source` linger as stale copies.

    Args:
        source (Path): The tree to read from.
        dest (Path): The tree to write into. Created if missing.
        denylist (Iterable[str]): Lowercase substrings excluding a path.
        stop (threading.Event | None): Checked before each file.

    Returns:
        MirrorStats: How many files were copied and skipped.

    Raises:
        OSError: On any traversal or copy failure; the mirror stops there.
        BackupCancelled: If `stop` is set mid-walk.
    """
    terms = list(denylist)
    stats = MirrorStats()
    dest.mkdir(parents=True, exist_ok=True)

    for src_path in iter_files(source):
        if stop is not None and stop.is_set():
            raise BackupCancelled(f"Mirror interrupted after {stats.copied} files")

        rel_path = src_path.relative_to(source)
        if is_denied(rel_path, terms):
            stats.skipped += 1
            continue

        dest_path = dest / rel_path
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy(src_path, dest_path)
        stats.copied += 1
        logger.info(f"COPIED {src_path} -> {dest_path}")

    logger.info(
        f"MIRROR complete: {stats.copied} copied, {stats.skipped} skipped "
        f"({source} -> {dest})"
    )
    return stats
