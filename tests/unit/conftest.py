"""Shared fixtures for unit tests."""

import logging
import time
from dataclasses import replace

import pytest

from demo_server.bootstrap.config import AppSettings


@pytest.fixture(autouse=True)
def enable_log_propagation():
    """Ensure logs propagate to root so caplog can catch them, then restore state."""
    logger = logging.getLogger("demo_server")
    old_propagate = logger.propagate
    old_level = logger.level
    old_handlers = list(logger.handlers)
    logger.propagate = True
    yield
    for handler in logger.handlers:
        if handler not in old_handlers:
            handler.close()
    logger.handlers[:] = old_handlers
    logger.setLevel(old_level)
    logger.propagate = old_propagate


@pytest.fixture(name="settings")
def settings_fixture() -> AppSettings:
    """Default settings captured just now, i.e. still warming up."""
    return AppSettings()


@pytest.fixture(name="warm_settings")
def warm_settings_fixture(settings: AppSettings) -> AppSettings:
    """Default settings whose start time lies well past the readiness delay."""
    return replace(settings, start_monotonic=time.monotonic() - 60)
