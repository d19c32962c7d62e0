import atexit
import logging
import os
import signal
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from types import FrameType

from rich.console import Console
from rich.markup import escape

from .config import Config, SyncStrategy
from .constants import APP_NAME, LOG_FILE, PAUSE_FILE, PID_FILE
from .git_wrapper import GitRepo
from .mirror import BackupCancelled, mirror_tree
from .reconciler import SyncResult, reconcile
from .rotation import rotate_backup

logger = logging.getLogger(APP_NAME)
logger.setLevel(logging.INFO)

err_console = Console(stderr=True)


def setup_logging(interactive: bool, config: Config | None = None) -> None:
    """Configures the logging subsystem.

    Args:
        interactive (bool): If True, logs to stdout. If False, logs to stderr
                            and to a rotating log file.
        config (Config | None): Supplies the log size limit.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    # Always log to a stream (captured by systemd when supervised).
    stream_handler = logging.StreamHandler(
        sys.stderr if not interactive else sys.stdout
    )
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if not interactive:
        LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=(config or Config()).limits.max_log_size,
            backupCount=5,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


def run_backup(config: Config, stop: threading.Event | None = None) -> SyncResult:
    """Mirrors the source tree and publishes it, as one step.

    Args:
        config (Config): The loaded configuration.
        stop (threading.Event | None): Cancellation signal for the mirror.

    Returns:
        SyncResult: The reconciliation outcome.

    Raises:
        OSError: If mirroring fails.
        GitError: If a non-tolerated git step fails.
        BackupCancelled: If `stop` is set before the step finishes.
    """
    backup_dir = config.paths.backup
    mirror_tree(config.paths.source, backup_dir, config.filter.denylist, stop)

    if stop is not None and stop.is_set():
        raise BackupCancelled("Stopped before pushing")

    repo = GitRepo(backup_dir, timeout=config.daemon.git_timeout)
    return reconcile(repo, config.remote)


def run_cycle(config: Config, stop: threading.Event | None = None) -> bool:
    """Runs one rotate -> mirror -> reconcile pass.

    Rotation failures are logged and the cycle carries on (the mirror then
    writes over the old backup in place). Backup failures are logged and end
    the cycle. Nothing here propagates.

    Args:
        config (Config): The loaded configuration.
        stop (threading.Event | None): Cancellation signal.

    Returns:
        bool: True if the backup was pushed.
    """
    if PAUSE_FILE.exists():
        logger.info("SKIPPED: Paused by user.")
        return False

    try:
        if rotate_backup(config.paths.backup) is None:
            logger.info(f"ROTATE: No existing backup at {config.paths.backup}.")
    except Exception as e:
        logger.error(f"ROTATE ERROR: {e}")

    try:
        run_backup(config, stop)
    except BackupCancelled as e:
        logger.warning(f"CANCELLED: {e}")
        return False
    except Exception as e:
        logger.error(f"BACKUP ERROR: {e}")
        return False

    logger.info("SUCCESS: Backup cycle complete.")
    return True


def run_forever(config: Config, stop: threading.Event) -> None:
    """Alternates between running a cycle and sleeping until `stop` is set.

    Args:
        config (Config): The loaded configuration.
        stop (threading.Event): Set to end the loop; interrupts the sleep.
    """
    interval = config.daemon.interval
    while not stop.is_set():
        run_cycle(config, stop)
        if stop.is_set():
            break
        hours, minutes = interval // 3600, interval % 3600 // 60
        logger.info(f"SLEEPING: Next cycle in {hours}h {minutes}m.")
        if stop.wait(interval):
            break

    logger.info("STOPPED: Scheduler exited.")


def _write_pid_file() -> None:
    try:
        PID_FILE.parent.mkdir(parents=True, exist_ok=True)
        with open(PID_FILE, "w") as f:
            f.write(str(os.getpid()))

        # Ensure cleanup on exit.
        atexit.register(lambda: PID_FILE.unlink(missing_ok=True))
    except OSError as e:
        logger.warning(f"Could not write PID file: {e}")


def main(
    interactive: bool = False, once: bool = False, config_path: Path | None = None
) -> None:
    """The daemon entry point.

    Loads the configuration once, installs stop handlers for SIGTERM/SIGINT
    and then runs a single cycle (`once`) or the scheduler loop.

    Args:
        interactive (bool, optional): Log to stdout instead of stderr + file.
        once (bool, optional): Run one cycle and return.
        config_path (Path | None, optional): Explicit config file.
    """
    config = Config.load(config_path)
    setup_logging(interactive, config)

    if problems := config.validate():
        for problem in problems:
            err_console.print(f"[bold red]FATAL:[/bold red] {escape(problem)}")
            logger.error(f"CONFIG: {problem}")
        sys.exit(1)

    if config.remote.strategy is SyncStrategy.REBASE:
        logger.warning(
            "WARNING: rebase strategy with rotation starts each cycle from a fresh "
            "repository; pushes fail whenever a backed-up file changed."
        )

    stop = threading.Event()

    def stop_handler(signum: int, _frame: FrameType | None) -> None:
        logger.info(f"SIGNAL: Received {signal.Signals(signum).name}, stopping.")
        stop.set()

    signal.signal(signal.SIGTERM, stop_handler)
    signal.signal(signal.SIGINT, stop_handler)

    if once:
        run_cycle(config, stop)
        return

    _write_pid_file()
    logger.info(
        f"STARTED: {config.paths.source} -> {config.paths.backup} "
        f"({config.remote.strategy.value} sync to {config.remote.url})"
    )
    run_forever(config, stop)


if __name__ == "__main__":
    main()
