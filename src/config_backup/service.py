import shutil
import subprocess
import sys
from pathlib import Path

from rich.console import Console

from .constants import APP_LABEL

console = Console()


def get_executable() -> str:
    """Locates the installed daemon executable in the system path.

    Returns:
        str: The absolute path to the 'config-backup-daemon' executable.

    Raises:
        SystemExit: If the executable is not found in the PATH.
    """
    exe = shutil.which("config-backup-daemon")
    if not exe:
        console.print(
            "[bold red]ERROR:[/bold red] Could not find 'config-backup-daemon'. "
            "Ensure the package is installed."
        )
        sys.exit(1)
    return exe


def get_unit_path() -> Path:
    """Resolves the systemd user unit path.

    Raises:
        NotImplementedError: On platforms without systemd user units.
    """
    if sys.platform.startswith("linux"):
        return Path.home() / f".config/systemd/user/{APP_LABEL}.service"

    raise NotImplementedError("Service installation is only supported on Linux.")


def render_unit(executable: str, config_path: Path | None = None) -> str:
    """Builds the systemd service unit text.

    The daemon loops on its own, so the unit only keeps it alive.
    """
    exec_start = executable
    if config_path:
        exec_start += f" --config {config_path}"

    return f"""[Unit]
Description=Config Backup Agent
After=network-online.target

[Service]
ExecStart={exec_start}
Restart=on-failure
RestartSec=60

[Install]
WantedBy=default.target
"""


def install(config_path: Path | None = None) -> None:
    """Writes and enables a systemd user service for the daemon.

    Args:
        config_path (Path | None, optional): Config file passed to the daemon.
    """
    if not sys.platform.startswith("linux"):
        console.print(
            "\n[bold yellow]NOTE:[/bold yellow] Automatic service installation is "
            "only available on Linux."
        )
        console.print(
            "Run [green]config-backup-daemon[/green] under your own supervisor.\n"
        )
        return

    exe = get_executable()
    unit_path = get_unit_path()
    unit_path.parent.mkdir(parents=True, exist_ok=True)

    with open(unit_path, "w") as f:
        f.write(render_unit(exe, config_path))

    subprocess.run(["systemctl", "--user", "daemon-reload"], check=True)
    subprocess.run(
        ["systemctl", "--user", "enable", "--now", unit_path.name], check=True
    )
    console.print(
        f"[bold green]SUCCESS:[/bold green] systemd service active.\n"
        f"Check status: systemctl --user status {unit_path.name}"
    )


def uninstall() -> None:
    """Disables the systemd user service and removes its unit file."""
    if not sys.platform.startswith("linux"):
        console.print(
            "\n[bold yellow]NOTE:[/bold yellow] No service is installed on this platform."
        )
        return

    unit_path = get_unit_path()
    subprocess.run(
        ["systemctl", "--user", "disable", "--now", unit_path.name],
        stderr=subprocess.DEVNULL,
    )
    if unit_path.exists():
        unit_path.unlink()
    subprocess.run(["systemctl", "--user", "daemon-reload"])

    console.print("[bold green]SUCCESS:[/bold green] Service uninstalled.")
