"""
Unit tests for settings and logging setup.
"""

import logging

import pytest

from cozeapi import config
from cozeapi.config import Settings, setup_logging


@pytest.fixture
def basic_config_calls(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
    loggers = [logging.getLogger(name) for name in ("httpx", "httpcore")]
    levels = [logger.level for logger in loggers]
    yield calls
    for logger, level in zip(loggers, levels):
        logger.setLevel(level)


def test_setup_logging_defaults_to_info(basic_config_calls, monkeypatch):
    monkeypatch.setattr(config.settings, "debug", False)

    setup_logging()

    assert basic_config_calls[0]["level"] == logging.INFO
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("httpcore").level == logging.WARNING


def test_setup_logging_uses_debug_setting(basic_config_calls, monkeypatch):
    monkeypatch.setattr(config.settings, "debug", True)

    setup_logging()

    assert basic_config_calls[0]["level"] == logging.DEBUG


def test_explicit_level_wins(basic_config_calls, monkeypatch):
    monkeypatch.setattr(config.settings, "debug", True)

    setup_logging(logging.WARNING)

    assert basic_config_calls[0]["level"] == logging.WARNING


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("COZE_POLL_TIMEOUT", "30")
    monkeypatch.setenv("COZE_DEBUG", "true")

    loaded = Settings()

    assert loaded.poll_timeout == 30.0
    assert loaded.debug is True
    assert loaded.max_sse_events == 500
