"""Tests for logging utilities."""

from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from leyline import logging_utils
from leyline.cache import error_handler
from leyline.configuration import LeylineSettings


def _reset_logger() -> logging.Logger:
    logger = logging.getLogger("leyline")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    return logger


@pytest.fixture(autouse=True)
def _restore_logger():
    yield
    _reset_logger()


def test_setup_logging_creates_rotating_file(tmp_path: Path):
    logger = _reset_logger()
    log_path = logging_utils.setup_logging(tmp_path, level="INFO")

    assert log_path == tmp_path / "logs" / "leyline.log"
    assert log_path.exists()

    file_handlers = [
        handler for handler in logger.handlers if isinstance(handler, RotatingFileHandler)
    ]
    assert len(file_handlers) == 1
    assert file_handlers[0].baseFilename == str(log_path)
    assert logger.level == logging.INFO


def test_setup_logging_is_idempotent(tmp_path: Path):
    logger = _reset_logger()
    logging_utils.setup_logging(tmp_path, level="INFO")
    handler_count = len(logger.handlers)

    logging_utils.setup_logging(tmp_path, level="INFO")
    assert len(logger.handlers) == handler_count


def test_setup_logging_falls_back_when_permission_denied(tmp_path: Path, monkeypatch):
    _reset_logger()
    cache_dir = tmp_path / "cache"
    primary_parent = cache_dir / "logs"
    original_mkdir = Path.mkdir

    def fake_mkdir(self, *args, **kwargs):
        if str(self).startswith(str(primary_parent)):
            raise PermissionError
        return original_mkdir(self, *args, **kwargs)

    monkeypatch.setattr(Path, "mkdir", fake_mkdir)
    fallback_root = tmp_path / "fallback"
    monkeypatch.setattr(logging_utils, "FALLBACK_ROOT", fallback_root)

    log_path = logging_utils.setup_logging(cache_dir, level="INFO")
    expected = fallback_root / "logs" / "leyline.log"

    assert log_path == expected
    assert expected.exists()
    assert "is not writable" in expected.read_text(encoding="utf-8")


def test_structured_logging_writes_json_lines(tmp_path: Path):
    _reset_logger()
    logging_utils.setup_logging(tmp_path, level="INFO", structured=True, console=False)

    logging.getLogger("leyline.cache").warning("[Cache] slow disk", extra={"extra": {"cache_path": "/x"}})
    for handler in logging.getLogger("leyline").handlers:
        handler.flush()

    lines = (tmp_path / "logs" / "leyline.jsonl").read_text().splitlines()
    entry = json.loads(lines[-1])
    assert entry["level"] == "WARNING"
    assert entry["logger"] == "leyline.cache"
    assert entry["message"] == "[Cache] slow disk"
    assert entry["extra"] == {"cache_path": "/x"}


def test_configure_logging_applies_settings(tmp_path: Path, monkeypatch):
    logger = _reset_logger()
    monkeypatch.setattr(error_handler, "_enabled", True)
    settings = LeylineSettings(cache_dir=tmp_path, cache_warnings=False, debug=True)

    log_path = logging_utils.configure_logging(settings, console=False)

    assert log_path == tmp_path / "logs" / "leyline.log"
    assert logger.level == logging.DEBUG
    assert error_handler.warnings_enabled() is False
