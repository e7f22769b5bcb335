"""Tests for the Strongbox command line interface."""

import re

import pytest
import yaml
from click.testing import CliRunner

from src.cli import cli


@pytest.fixture
def env(tmp_path):
    """Config directory with one registered server holding two files."""
    data = tmp_path / "volumes" / "alpha"
    data.mkdir(parents=True)
    (data / "a.txt").write_text("hello")
    (data / "b.txt").write_text("world")

    config_dir = tmp_path / "config"
    config_dir.mkdir()
    settings = {
        "system": {
            "archive_directory": str(tmp_path / "archives"),
            "data_directory": str(tmp_path / "volumes"),
        },
        "archive": {"check_disk_space": False},
    }
    (config_dir / "settings.yaml").write_text(yaml.dump(settings))
    (config_dir / "servers.yaml").write_text(yaml.dump({"servers": {"alpha": {"path": str(data)}}}))
    return tmp_path, config_dir


def run(config_dir, *args):
    return CliRunner().invoke(cli, ["--config-dir", str(config_dir), *args])


def test_archive_checksum_delete_flow(env):
    tmp_path, config_dir = env

    result = run(config_dir, "archive", "--server", "alpha")
    assert result.exit_code == 0, result.output
    assert (tmp_path / "archives" / "alpha.tar.gz").exists()

    assert run(config_dir, "exists", "alpha").exit_code == 0

    result = run(config_dir, "checksum", "alpha")
    assert result.exit_code == 0
    digest = result.output.strip()
    assert re.fullmatch(r"[0-9a-f]{64}", digest)

    assert run(config_dir, "verify", "alpha", "--expected", digest).exit_code == 0
    assert run(config_dir, "verify", "alpha", "--expected", "0" * 64).exit_code == 1

    result = run(config_dir, "delete", "alpha")
    assert result.exit_code == 0
    assert not (tmp_path / "archives" / "alpha.tar.gz").exists()

    assert run(config_dir, "delete", "alpha").exit_code == 0
    assert run(config_dir, "exists", "alpha").exit_code == 1


def test_checksum_without_archive_fails(env):
    _, config_dir = env

    result = run(config_dir, "checksum", "alpha")

    assert result.exit_code == 1
    assert "not found" in result.output.lower()


def test_unknown_server(env):
    _, config_dir = env

    result = run(config_dir, "archive", "--server", "nobody")

    assert result.exit_code == 1
    assert "not found" in result.output


def test_archive_traversal_fails(env):
    tmp_path, config_dir = env
    (tmp_path / "volumes" / "alpha" / "evil").symlink_to("/etc")

    result = run(config_dir, "archive", "--server", "alpha")

    assert result.exit_code == 1
    assert not (tmp_path / "archives" / "alpha.tar.gz").exists()


def test_archive_all_and_list(env):
    tmp_path, config_dir = env

    result = run(config_dir, "archive", "--all", "--sequential")
    assert result.exit_code == 0, result.output
    assert "1/1" in result.output

    result = run(config_dir, "list")
    assert result.exit_code == 0
    assert "alpha" in result.output


def test_stat_and_contents(env):
    _, config_dir = env
    run(config_dir, "archive", "--server", "alpha")

    result = run(config_dir, "stat", "alpha")
    assert result.exit_code == 0
    assert "application/gzip" in result.output

    result = run(config_dir, "contents", "alpha", "--pattern", "a.*")
    assert result.exit_code == 0
    assert "a.txt" in result.output
    assert "b.txt" not in result.output


def test_register_and_unregister(env):
    tmp_path, config_dir = env
    data = tmp_path / "volumes" / "beta"
    data.mkdir()

    assert run(config_dir, "register", "beta", "--path", str(data)).exit_code == 0
    servers = yaml.safe_load((config_dir / "servers.yaml").read_text())["servers"]
    assert "beta" in servers

    assert run(config_dir, "unregister", "beta").exit_code == 0
    assert run(config_dir, "unregister", "beta").exit_code == 1


def test_register_rejects_bad_id(env):
    tmp_path, config_dir = env

    result = run(config_dir, "register", "../escape", "--path", str(tmp_path))

    assert result.exit_code == 1


def test_numeric_server_id_in_registry(env):
    tmp_path, config_dir = env
    numeric = tmp_path / "volumes" / "12345"
    numeric.mkdir()
    (numeric / "c.txt").write_text("numbers")
    servers = f"servers:\n  alpha:\n    path: {tmp_path / 'volumes' / 'alpha'}\n  12345:\n    path: {numeric}\n"
    (config_dir / "servers.yaml").write_text(servers)

    result = run(config_dir, "archive", "--all", "--sequential")
    assert result.exit_code == 0, result.output
    assert "2/2" in result.output
    assert (tmp_path / "archives" / "12345.tar.gz").exists()

    result = run(config_dir, "list")
    assert result.exit_code == 0, result.output
    assert "12345" in result.output


def test_archive_all_records_invalid_entries(env):
    tmp_path, config_dir = env
    servers = {
        "servers": {
            "alpha": {"path": str(tmp_path / "volumes" / "alpha")},
            "bad id": {"path": str(tmp_path)},
            "pathless": {},
        }
    }
    (config_dir / "servers.yaml").write_text(yaml.dump(servers))

    result = run(config_dir, "archive", "--all")

    assert result.exit_code == 1
    assert "1/3" in result.output
    assert "Invalid server id" in result.output
    assert (tmp_path / "archives" / "alpha.tar.gz").exists()
