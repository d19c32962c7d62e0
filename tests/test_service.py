from pathlib import Path
from unittest.mock import MagicMock

import pytest

from config_backup import service


def test_render_unit_restarts_daemon() -> None:
    unit = service.render_unit("/usr/bin/config-backup-daemon")

    assert "ExecStart=/usr/bin/config-backup-daemon\n" in unit
    assert "Restart=on-failure" in unit
    assert "[Timer]" not in unit


def test_render_unit_with_config_path() -> None:
    unit = service.render_unit("/bin/agent", Path("/etc/backup.toml"))

    assert "ExecStart=/bin/agent --config /etc/backup.toml" in unit


def test_install_linux_writes_unit_and_enables(
    tmp_path: Path, mocker: MagicMock
) -> None:
    mocker.patch("sys.platform", "linux")
    mocker.patch("shutil.which", return_value="/usr/bin/config-backup-daemon")
    mocker.patch.object(Path, "home", return_value=tmp_path)
    mock_run = mocker.patch("subprocess.run")
    mocker.patch("config_backup.service.console")

    service.install()

    unit_path = tmp_path / ".config/systemd/user/config-backup-agent.service"
    assert "ExecStart=/usr/bin/config-backup-daemon" in unit_path.read_text()
    mock_run.assert_any_call(
        ["systemctl", "--user", "enable", "--now", "config-backup-agent.service"],
        check=True,
    )


def test_install_exits_without_executable(mocker: MagicMock) -> None:
    mocker.patch("sys.platform", "linux")
    mocker.patch("shutil.which", return_value=None)
    mocker.patch("config_backup.service.console")

    with pytest.raises(SystemExit):
        service.install()


def test_uninstall_removes_unit(tmp_path: Path, mocker: MagicMock) -> None:
    mocker.patch("sys.platform", "linux")
    mocker.patch.object(Path, "home", return_value=tmp_path)
    mock_run = mocker.patch("subprocess.run")
    mocker.patch("config_backup.service.console")
    unit_path = tmp_path / ".config/systemd/user/config-backup-agent.service"
    unit_path.parent.mkdir(parents=True)
    unit_path.write_text("[Unit]\n")

    service.uninstall()

    assert not unit_path.exists()
    mock_run.assert_any_call(["systemctl", "--user", "daemon-reload"])
