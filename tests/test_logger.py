"""
Unit tests for logger setup and runtime level changes.
"""
import logging

import pytest

from core.logger import LOG_FORMAT, resolve_level, set_log_level, setup_logger


@pytest.fixture
def logger_name(request):
    name = f"tests.logger.{request.node.name}"
    yield name
    logging.getLogger(name).handlers.clear()


def test_setup_logger_attaches_one_formatted_handler(logger_name):
    """Test handler is added once with the pipe-separated format."""
    logger = setup_logger(logger_name, "DEBUG")
    setup_logger(logger_name, "DEBUG")

    assert len(logger.handlers) == 1
    assert logger.handlers[0].formatter._fmt == LOG_FORMAT
    assert logger.level == logging.DEBUG


def test_level_from_environment(logger_name, monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "warning")
    assert setup_logger(logger_name).level == logging.WARNING


@pytest.mark.parametrize("level, expected", [
    ("ERROR", logging.ERROR),
    (" debug ", logging.DEBUG),
    ("VERBOSE", logging.INFO),
])
def test_resolve_level(level, expected):
    assert resolve_level(level) == expected


def test_set_log_level_updates_existing_loggers(logger_name):
    """Test loggers created at import time follow the configured level."""
    logger = setup_logger(logger_name, "INFO")

    applied = set_log_level("ERROR")

    assert applied == logging.ERROR
    assert logger.level == logging.ERROR
    assert logger.handlers[0].level == logging.ERROR

    set_log_level("INFO")
