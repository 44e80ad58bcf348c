from __future__ import annotations

import logging

import pytest
import structlog

from core.logging_config import setup_logging
from core.settings import Settings


@pytest.fixture(autouse=True)
def _restore_logging():
    root_logger = logging.getLogger()
    handlers, level = root_logger.handlers[:], root_logger.level
    yield
    structlog.reset_defaults()
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


def test_setup_logging_uses_json_renderer_in_production():
    setup_logging(Settings(env="production", db_type="mongodb", log_level="WARNING"))

    processors = structlog.get_config()["processors"]
    assert isinstance(processors[-1], structlog.processors.JSONRenderer)
    assert logging.getLogger().level == logging.WARNING


def test_setup_logging_replaces_root_handlers():
    setup_logging(Settings())
    setup_logging(Settings())

    processors = structlog.get_config()["processors"]
    assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
    assert len(logging.getLogger().handlers) == 1
