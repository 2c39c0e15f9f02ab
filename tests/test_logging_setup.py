import io
import logging

import pytest

from bank_import.logging_setup import configure_logging, get_logger


def _reset():
    logger = logging.getLogger("bank_import")
    logger.handlers[:] = []


def test_configure_once_with_env_level(monkeypatch: pytest.MonkeyPatch):
    _reset()
    monkeypatch.setenv("BANK_IMPORT_LOG_LEVEL", "warning")
    stream = io.StringIO()
    configure_logging(stream=stream, fmt="%(levelname)s %(message)s")
    configure_logging(level="DEBUG")

    logger = get_logger("bank_import.test")
    logger.info("hidden")
    logger.warning("shown")

    assert stream.getvalue() == "WARNING shown\n"
    pkg = logging.getLogger("bank_import")
    assert len(pkg.handlers) == 1
    assert pkg.propagate is False


def test_explicit_level_beats_env(monkeypatch: pytest.MonkeyPatch):
    _reset()
    monkeypatch.setenv("BANK_IMPORT_LOG_LEVEL", "ERROR")
    stream = io.StringIO()
    configure_logging(logging.DEBUG, stream=stream, fmt="%(message)s")

    get_logger("bank_import.test").debug("detail")
    assert stream.getvalue() == "detail\n"


def test_library_default_is_silent():
    _reset()
    get_logger("bank_import.test")
    handlers = logging.getLogger("bank_import").handlers
    assert any(isinstance(h, logging.NullHandler) for h in handlers)
