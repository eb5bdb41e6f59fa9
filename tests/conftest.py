"""Shared pytest fixtures."""

import logging
import sys

import pytest

from src.utils import logging_config


@pytest.fixture
def restore_logging(monkeypatch):
    """Undo setup_logging()/install_excepthook() side effects after a test."""
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler.formatter, logging_config.ContextFormatter):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    logging_config.pop_context()
