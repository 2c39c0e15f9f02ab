"""Pytest configuration for test isolation.

Parsing reads ``BANK_IMPORT_*`` environment variables at call time, and the
CLI attaches a handler to the ``bank_import`` package logger. Both would leak
between tests, so an autouse fixture clears the variables and restores the
logger after each test.
"""

from __future__ import annotations

import logging
import os

import pytest


@pytest.fixture(autouse=True)
def _isolate_env_and_logging(monkeypatch: pytest.MonkeyPatch):
    for name in list(os.environ):
        if name.startswith("BANK_IMPORT_"):
            monkeypatch.delenv(name, raising=False)

    logger = logging.getLogger("bank_import")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]
