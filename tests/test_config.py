"""Tests for the configuration management subsystem."""

import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from config_backup.config import Config, SyncStrategy, parse_size, parse_time


def test_config_defaults() -> None:
    """Verifies that the configuration initializes with the documented defaults."""
    conf = Config()
    assert conf.paths.source == Path.home() / ".config"
    assert conf.paths.backup == Path.home() / "backup" / "config"
    assert conf.filter.denylist == ["discord", "cache"]
    assert conf.remote.name == "origin"
    assert conf.remote.branch == "main"
    assert conf.remote.strategy is SyncStrategy.FORCE
    assert conf.daemon.interval == 5 * 3600
    assert conf.daemon.git_timeout is None


def test_default_denylists_are_independent() -> None:
    a, b = Config(), Config()
    a.filter.denylist.append("steam")
    assert b.filter.denylist == ["discord", "cache"]


def test_config_load_from_file(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text(
        "[paths]\n"
        'source = "~/dotfiles"\n'
        f'backup = "{tmp_path / "out"}"\n'
        "[filter]\n"
        'denylist = ["Discord", "Cache", "discord", " steam "]\n'
        "[remote]\n"
        'url = "https://github.com/someone/backup.git"\n'
        'strategy = "Rebase"\n'
        "[daemon]\n"
        'interval = "30m"\n'
        "git_timeout = 120\n"
        "[limits]\n"
        'max_log_size = "1MB"\n'
    )

    conf = Config.load(config_file)

    assert conf.paths.source == Path.home() / "dotfiles"
    assert conf.paths.backup == tmp_path / "out"
    assert conf.filter.denylist == ["discord", "cache", "steam"]
    assert conf.remote.url == "https://github.com/someone/backup.git"
    assert conf.remote.strategy is SyncStrategy.REBASE
    assert conf.daemon.interval == 1800
    assert conf.daemon.git_timeout == 120
    assert conf.limits.max_log_size == 1024**2


def test_config_load_uses_default_file(tmp_path: Path, mocker: MagicMock) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text('[remote]\nurl = "git@host:repo.git"\n')
    mocker.patch("config_backup.config.CONFIG_FILE", config_file)

    assert Config.load().remote.url == "git@host:repo.git"


def test_config_missing_file_gives_defaults(tmp_path: Path, mocker: MagicMock) -> None:
    mocker.patch("config_backup.config.CONFIG_FILE", tmp_path / "nope.toml")

    assert Config.load() == Config()


def test_config_invalid_keys_and_values(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """Verifies that unknown keys are ignored and invalid values fallback to defaults."""
    caplog.set_level(logging.WARNING)

    config_file = tmp_path / "config.toml"
    config_file.write_text(
        "[daemon]\n"
        'interval = "soon"\n'
        'fake_setting = "ignored"\n'
        "[remote]\n"
        'strategy = "merge"\n'
        "[filter]\n"
        'denylist = "discord"\n'
    )

    conf = Config.load(config_file)

    assert conf.daemon.interval == 5 * 3600
    assert conf.remote.strategy is SyncStrategy.FORCE
    assert conf.filter.denylist == ["discord", "cache"]

    assert "Unknown config keys in [daemon]: fake_setting" in caplog.text
    assert "Config error in [daemon].interval: Invalid time format" in caplog.text
    assert "Unknown strategy 'merge'" in caplog.text
    assert "Config error in [filter].denylist" in caplog.text


def test_config_syntax_error_falls_back(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("[remote\nurl = ")

    conf = Config.load(config_file)

    assert conf == Config()
    assert "Config syntax error" in caplog.text


def test_parse_size() -> None:
    assert parse_size(100) == 100
    assert parse_size("100kb") == 102400
    assert parse_size("10 MB") == 10485760

    with pytest.raises(ValueError, match=r"Invalid size format '100 bits'"):
        parse_size("100 bits")


def test_parse_time() -> None:
    assert parse_time(50) == 50
    assert parse_time("30s") == 30
    assert parse_time("10 min") == 600
    assert parse_time("5h") == 18000
    assert parse_time("1.5 hrs") == 5400
    assert parse_time("1 day") == 86400

    with pytest.raises(ValueError, match=r"Invalid time format '10 lightyears'"):
        parse_time("10 lightyears")


def test_validate_reports_problems(tmp_path: Path) -> None:
    source = tmp_path / "source"
    source.mkdir()

    conf = Config()
    conf.paths.source = source
    conf.paths.backup = source / "backup"

    problems = conf.validate()

    assert "No remote URL configured ([remote].url)." in problems
    assert any("inside the source tree" in p for p in problems)


def test_validate_source_inside_backup(tmp_path: Path) -> None:
    (tmp_path / "backup" / "src").mkdir(parents=True)
    conf = Config()
    conf.paths.source = tmp_path / "backup" / "src"
    conf.paths.backup = tmp_path / "backup"
    conf.remote.url = "git@host:repo.git"

    assert any("inside the backup directory" in p for p in conf.validate())


def test_validate_ok(tmp_path: Path) -> None:
    (tmp_path / "source").mkdir()
    conf = Config()
    conf.paths.source = tmp_path / "source"
    conf.paths.backup = tmp_path / "backup"
    conf.remote.url = "git@host:repo.git"

    assert conf.validate() == []


def test_parse_time_rejects_booleans() -> None:
    """TOML `true` must not be read as one second."""
    with pytest.raises(ValueError, match="Invalid time format 'True'"):
        parse_time(True)
    with pytest.raises(ValueError, match="Invalid size format 'False'"):
        parse_size(False)


def test_config_boolean_interval_falls_back(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.WARNING)
    config_file = tmp_path / "config.toml"
    config_file.write_text("[daemon]\ninterval = true\ngit_timeout = true\n")

    conf = Config.load(config_file)

    assert conf.daemon.interval == 5 * 3600
    assert conf.daemon.git_timeout is None
    assert "Config error in [daemon].git_timeout" in caplog.text


@pytest.mark.parametrize("timeout", ["0", '"0s"'])
def test_validate_rejects_zero_git_timeout(tmp_path: Path, timeout: str) -> None:
    (tmp_path / "source").mkdir()
    config_file = tmp_path / "config.toml"
    config_file.write_text(
        "[paths]\n"
        f'source = "{tmp_path / "source"}"\n'
        f'backup = "{tmp_path / "backup"}"\n'
        "[remote]\n"
        'url = "git@host:repo.git"\n'
        "[daemon]\n"
        f"git_timeout = {timeout}\n"
    )

    conf = Config.load(config_file)

    assert conf.daemon.git_timeout == 0
    assert conf.validate() == ["[daemon].git_timeout must be positive."]
