import argparse
import os
import subprocess
import sys
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import daemon, service
from .config import Config
from .constants import CONFIG_FILE, LOG_FILE, PAUSE_FILE, PID_FILE
from .rotation import list_generations

console = Console()

DEFAULT_CONFIG_TEMPLATE = """\
# Config Backup Agent

[paths]
# source = "~/.config"
# backup = "~/backup/config"

[filter]
# Case-insensitive substrings; any matching relative path is skipped.
# denylist = ["discord", "cache"]

[remote]
# url = "git@github.com:USER/backup-config.git"
# name = "origin"
# branch = "main"
# Options: force (push --force), rebase (pull --rebase, then push)
# strategy = "force"

[daemon]
# interval = "5h"
# Unset waits forever.
# git_timeout = "10m"

[limits]
# max_log_size = "5MB"
"""


def _daemon_pid() -> int | None:
    """Returns the PID of a running daemon, if any."""
    if not PID_FILE.exists():
        return None
    try:
        with open(PID_FILE) as f:
            pid = int(f.read().strip())
        os.kill(pid, 0)
        return pid
    except (ValueError, OSError):
        return None


def open_config() -> None:
    """Opens the configuration file in the system default editor."""
    if not CONFIG_FILE.exists():
        CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
        with open(CONFIG_FILE, "w") as f:
            f.write(DEFAULT_CONFIG_TEMPLATE)

    editor = os.environ.get("EDITOR")
    if not editor:
        editor = "open" if sys.platform == "darwin" else "nano"

    console.print(f"Opening [cyan]{CONFIG_FILE}[/cyan]...")

    try:
        subprocess.run([editor, str(CONFIG_FILE)])
    except OSError as e:
        console.print(f"[red]Could not open editor: {e}[/red]")


def show_config_reference() -> None:
    """Displays a formatted table of all available configuration options."""
    table = Table(title="Config Backup Configuration Schema", show_lines=True)
    table.add_column("Section", style="cyan", justify="right")
    table.add_column("Key", style="green")
    table.add_column("Type", style="dim")
    table.add_column("Default", style="yellow")
    table.add_column("Description")

    table.add_row("paths", "source", "path", '"~/.config"', "Tree to back up.")
    table.add_row(
        "", "backup", "path", '"~/backup/config"', "Mirror target and git working copy."
    )
    table.add_row(
        "filter",
        "denylist",
        "list[str]",
        '["discord", "cache"]',
        "Substrings excluding any relative path that contains them (any case).",
    )
    table.add_row("remote", "url", "str", '""', "Remote repository URL. Required.")
    table.add_row("", "name", "str", '"origin"', "Git remote name.")
    table.add_row("", "branch", "str", '"main"', "Branch committed to and pushed.")
    table.add_row(
        "",
        "strategy",
        "str",
        '"force"',
        "'force': push --force over the remote. 'rebase': pull --rebase then push.",
    )
    table.add_row(
        "daemon",
        "interval",
        "int | str",
        '"5h"',
        "Sleep between cycles (e.g., '30m', '5h', 18000).",
    )
    table.add_row(
        "", "git_timeout", "int | str", "None", "Kill git commands after this long."
    )
    table.add_row(
        "limits", "max_log_size", "int | str", '"5MB"', "Log size before rotation."
    )

    console.print(table)


def show_status(config: Config) -> None:
    """Displays daemon state, configuration and backup generations."""
    pid = _daemon_pid()
    paused = PAUSE_FILE.exists()

    content = Text()
    content.append("Daemon:   ", style="bold")
    if pid:
        content.append(f"Running (pid {pid})\n", style="bold green")
    else:
        content.append("Stopped\n", style="bold red")

    content.append("Mode:     ", style="bold")
    if paused:
        content.append("PAUSED\n", style="bold yellow")
    else:
        content.append("Active\n", style="green")

    interval = config.daemon.interval
    content.append(f"Source:   {config.paths.source}\n")
    content.append(f"Backup:   {config.paths.backup}\n")
    content.append(f"Remote:   {config.remote.url or '(not set)'}\n")
    content.append(f"Strategy: {config.remote.strategy.value}\n")
    content.append(f"Interval: {interval // 3600}h {interval % 3600 // 60}m\n")
    content.append(f"Denylist: {', '.join(config.filter.denylist) or '(empty)'}")

    console.print(Panel(content, title="Config Backup Status", expand=False))

    if problems := config.validate():
        for problem in problems:
            console.print(f"[bold yellow]WARNING:[/bold yellow] {escape(problem)}")

    generations = list_generations(config.paths.backup)
    if generations:
        _, latest = generations[-1]
        console.print(
            f"[dim]{len(generations)} rotated generation(s); "
            f"latest {latest.strftime('%Y-%m-%d %H:%M')}.[/dim]"
        )


def _display(path: Path) -> str:
    return str(path).replace(str(Path.home()), "~")


def list_backups(config: Config) -> None:
    """Lists the current backup directory and its rotated generations."""
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Directory", style="cyan")
    table.add_column("Rotated", justify="right", style="dim", no_wrap=True)

    backup_dir = config.paths.backup
    if backup_dir.exists():
        table.add_row(_display(backup_dir), "[green]current[/green]")

    for path, ts in reversed(list_generations(backup_dir)):
        table.add_row(_display(path), ts.strftime("%Y-%m-%d %H:%M"))

    if table.row_count == 0:
        console.print("[yellow]No backups yet.[/yellow]")
        return

    console.print(table)


def tail_log() -> None:
    """Follows the daemon log file in real-time."""
    if not LOG_FILE.exists():
        console.print(f"[red]No log file found yet at {LOG_FILE}.[/red]")
        return

    console.print(f"Tailing [bold cyan]{LOG_FILE}[/bold cyan] (Ctrl+C to stop)...")
    try:
        subprocess.run(["tail", "-n", "1000", "-f", str(LOG_FILE)])
    except KeyboardInterrupt:
        console.print("\nStopped.", style="dim")


def set_pause_state(paused: bool) -> None:
    """Toggles whether the daemon runs its cycles.

    Args:
        paused (bool): True to pause backups, False to resume them.
    """
    if paused:
        PAUSE_FILE.parent.mkdir(parents=True, exist_ok=True)
        PAUSE_FILE.touch()
        console.print("Backups paused. Cycles will be skipped.", style="bold yellow")
    else:
        PAUSE_FILE.unlink(missing_ok=True)
        console.print("Backups resumed.", style="bold green")


def _add_config_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help=f"Path to the config file (default: {CONFIG_FILE})",
    )


def daemon_main() -> None:
    """Entry point for the background daemon executable."""
    parser = argparse.ArgumentParser(prog="config-backup-daemon")
    _add_config_flag(parser)
    parser.add_argument(
        "--once", action="store_true", help="Run a single cycle and exit"
    )
    args = parser.parse_args()
    daemon.main(interactive=False, once=args.once, config_path=args.config)


def main() -> None:
    """Main entry point for the config-backup CLI."""
    parser = argparse.ArgumentParser(
        prog="config-backup",
        description="Mirror a configuration directory into git on a schedule.",
    )
    _add_config_flag(parser)

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("now", help="Run one backup cycle immediately")
    subparsers.add_parser("run", help="Run the scheduler in the foreground")
    subparsers.add_parser("status", help="Show daemon state and configuration")
    subparsers.add_parser("list", help="List the backup and rotated generations")
    subparsers.add_parser("pause", help="Skip cycles until resumed")
    subparsers.add_parser("resume", help="Resume skipped cycles")
    subparsers.add_parser("log", help="Tail the daemon log file")

    config_parser = subparsers.add_parser(
        "config", help="Open config file or view options"
    )
    config_parser.add_argument(
        "--list",
        "-l",
        action="store_true",
        help="List all available configuration options and their descriptions",
    )

    subparsers.add_parser("install-service", help="Install the systemd user service")
    subparsers.add_parser("uninstall-service", help="Remove the systemd user service")

    args = parser.parse_args()

    if args.command == "now":
        daemon.main(interactive=True, once=True, config_path=args.config)
    elif args.command == "run":
        daemon.main(interactive=True, config_path=args.config)
    elif args.command == "status":
        show_status(Config.load(args.config))
    elif args.command == "list":
        list_backups(Config.load(args.config))
    elif args.command == "pause":
        set_pause_state(True)
    elif args.command == "resume":
        set_pause_state(False)
    elif args.command == "log":
        tail_log()
    elif args.command == "config":
        if args.list:
            show_config_reference()
        else:
            open_config()
    elif args.command == "install-service":
        with console.status("Installing background service...", spinner="dots"):
            service.install(config_path=args.config)
    elif args.command == "uninstall-service":
        with console.status("Uninstalling service...", spinner="dots"):
            service.uninstall()
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
