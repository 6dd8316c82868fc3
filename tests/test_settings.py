"""Tests for Settings and logging setup."""

import json
import logging

import pytest
from pydantic import ValidationError

from task_time_machine.observability import JsonFormatter, configure_logging, get_logger
from task_time_machine.settings import Settings


def test_defaults():
    settings = Settings()
    assert settings.playback_interval_ms == 150
    assert settings.playback_increment == 2.0
    assert settings.seek_step == 5.0
    assert settings.default_status == "todo"
    assert settings.default_priority == "medium"
    assert settings.unassigned_label == "Unassigned"


def test_environment_prefix(monkeypatch):
    monkeypatch.setenv("TIME_MACHINE_PLAYBACK_INTERVAL_MS", "50")
    monkeypatch.setenv("TIME_MACHINE_TIMEZONE", "Europe/Berlin")
    settings = Settings()
    assert settings.playback_interval_ms == 50
    assert settings.zone.key == "Europe/Berlin"


@pytest.mark.parametrize(
    "overrides",
    [
        {"timezone": "Mars/Olympus_Mons"},
        {"feed_concurrency": 0},
        {"playback_interval_ms": 0},
        {"initial_position": 120},
    ],
)
def test_invalid_settings_are_rejected(overrides):
    with pytest.raises(ValidationError):
        Settings(**overrides)


def test_get_logger_namespaces_modules():
    assert get_logger("feed").name == "task_time_machine.feed"
    assert get_logger("task_time_machine.time_machine.feed").name == "task_time_machine.time_machine.feed"


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("task_time_machine.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    record.task_id = 7
    line = json.loads(JsonFormatter().format(record))
    assert line["msg"] == "hello world"
    assert line["level"] == "INFO"
    assert line["task_id"] == 7


def test_configure_logging_replaces_handler():
    root = configure_logging("DEBUG", json_output=True)
    configure_logging("INFO")
    assert len(root.handlers) == 1
    assert root.level == logging.INFO
