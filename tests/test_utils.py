"""Tests for logging setup and desktop notifications."""

import logging
import shutil
import subprocess

import pytest

from src.utils.log_setup import LOGGER_NAMES, setup_logging
from src.utils.notifications import NotificationManager


@pytest.fixture
def clean_loggers():
    yield
    for name in LOGGER_NAMES:
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()


def test_setup_logging_writes_rotating_file(tmp_path, clean_loggers):
    log_file = tmp_path / "logs" / "strongbox.log"

    setup_logging(log_file, "DEBUG", console=False)
    logging.getLogger("Archiver").info("archived alpha")
    for handler in logging.getLogger("Archiver").handlers:
        handler.flush()

    assert "Archiver - INFO - archived alpha" in log_file.read_text()


def test_setup_logging_does_not_duplicate_handlers(tmp_path, clean_loggers):
    setup_logging(tmp_path / "a.log", console=False)
    setup_logging(tmp_path / "a.log", console=False)

    assert len(logging.getLogger("Archiver").handlers) == 1


def test_setup_logging_without_targets_is_noop(clean_loggers):
    setup_logging(None, console=False)

    assert logging.getLogger("Archiver").handlers == []


def test_notifications_disabled_without_notify_send(monkeypatch):
    monkeypatch.setattr(shutil, "which", lambda name: None)

    notifier = NotificationManager()

    assert notifier.enabled is False
    assert notifier.notify_archive_success("alpha", 1.5) is False


def test_notification_failure_message_is_truncated(monkeypatch):
    calls = []
    monkeypatch.setattr(shutil, "which", lambda name: "/usr/bin/notify-send")
    monkeypatch.setattr(subprocess, "run", lambda cmd, **kwargs: calls.append(cmd))

    notifier = NotificationManager()
    assert notifier.notify_archive_failure("alpha", "x" * 500) is True

    cmd = calls[0]
    assert cmd[0] == "notify-send"
    assert "--urgency=critical" in cmd
    assert cmd[-2] == "Archive Failed"
    assert cmd[-1].endswith("...")
    assert len(cmd[-1]) < 150
