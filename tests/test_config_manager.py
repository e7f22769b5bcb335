"""Tests for the YAML configuration manager."""

from pathlib import Path

import pytest
import yaml

from src.core.config_manager import ConfigManager


@pytest.fixture
def config_dir(tmp_path):
    directory = tmp_path / "config"
    directory.mkdir()
    settings = {
        "system": {
            "archive_directory": str(tmp_path / "archives"),
            "data_directory": str(tmp_path / "volumes"),
        },
        "archive": {"check_disk_space": False},
    }
    (directory / "settings.yaml").write_text(yaml.dump(settings))
    (directory / "servers.yaml").write_text(yaml.dump({"servers": {"alpha": {"path": str(tmp_path / "alpha")}}}))
    return directory


def test_defaults_when_no_config(tmp_path):
    config = ConfigManager(tmp_path / "empty")

    assert config.get_archive_directory() == Path.home() / "strongbox" / "archives"
    assert config.get_all_servers() == {}
    assert config.get_setting("archive.check_disk_space", True) is True


def test_missing_settings_with_example_exits(tmp_path):
    (tmp_path / "settings.yaml.example").write_text("system: {}\n")

    with pytest.raises(SystemExit):
        ConfigManager(tmp_path)


def test_dotted_settings(config_dir, tmp_path):
    config = ConfigManager(config_dir)

    assert config.get_archive_directory() == tmp_path / "archives"
    assert config.get_setting("archive.check_disk_space", True) is False
    assert config.get_setting("system.missing.deeper", "fallback") == "fallback"
    assert config.get_setting("system.archive_directory.nested", 5) == 5


def test_registered_server(config_dir, tmp_path):
    config = ConfigManager(config_dir)

    assert config.get_server("alpha") == {"path": str(tmp_path / "alpha")}


def test_server_falls_back_to_data_directory(config_dir, tmp_path):
    (tmp_path / "volumes" / "beta").mkdir(parents=True)
    config = ConfigManager(config_dir)

    assert config.get_server("beta") == {"path": str(tmp_path / "volumes" / "beta")}
    assert config.get_server("gamma") is None


def test_add_and_remove_server_persist(config_dir, tmp_path):
    config = ConfigManager(config_dir)
    config.add_server("delta", {"path": str(tmp_path / "delta")})

    reloaded = ConfigManager(config_dir)
    assert "delta" in reloaded.get_all_servers()

    assert reloaded.remove_server("delta") is True
    assert reloaded.remove_server("delta") is False
    assert "delta" not in ConfigManager(config_dir).get_all_servers()


def test_numeric_server_ids_are_strings(config_dir, tmp_path):
    (config_dir / "servers.yaml").write_text(f"servers:\n  12345:\n    path: {tmp_path / 'numeric'}\n")
    config = ConfigManager(config_dir)

    assert list(config.get_all_servers()) == ["12345"]
    assert config.get_server("12345") == {"path": str(tmp_path / "numeric")}
    assert config.remove_server("12345") is True
    assert ConfigManager(config_dir).get_all_servers() == {}
