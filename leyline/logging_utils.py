"""Logging setup for leyline: a rotating text log, optional JSON lines, optional stderr."""

from __future__ import annotations

import json
import logging
import tempfile
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Union

from .cache import error_handler
from .configuration import LeylineSettings

LOG_SUBPATH = Path("logs") / "leyline.log"
STRUCTURED_LOG_SUBPATH = Path("logs") / "leyline.jsonl"
MAX_BYTES = 5 * 1024 * 1024  # 5 MB per log segment
BACKUP_COUNT = 3
FALLBACK_ROOT = Path(tempfile.gettempdir()) / "leyline"
TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record; ``extra={"extra": {...}}`` lands under ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        extra = getattr(record, "extra", None)
        if extra:
            entry["extra"] = extra
        return json.dumps(entry, default=str)


def setup_logging(
    log_root: Path,
    level: Union[str, int] = logging.WARNING,
    structured: bool = False,
    console: bool = True,
) -> Path:
    """Configure the ``leyline`` logger.

    Args:
        log_root: Directory under which ``logs/`` is created, usually the cache dir.
        level: Logging level (string name or int constant).
        structured: Whether to add a JSON lines handler next to the text log.
        console: Whether to echo records to stderr.

    Returns:
        Path to the primary (text) log file.
    """
    relocated: List[Path] = []
    log_path = _resolve_log_path(log_root, LOG_SUBPATH, relocated)
    text_formatter = logging.Formatter(TEXT_FORMAT)

    logger = logging.getLogger("leyline")
    _reset_handlers(logger)
    logger.setLevel(_resolve_level(level))
    logger.addHandler(_rotating_handler(log_path, text_formatter))

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(text_formatter)
        logger.addHandler(console_handler)

    if structured:
        json_path = _resolve_log_path(log_root, STRUCTURED_LOG_SUBPATH, relocated)
        logger.addHandler(_rotating_handler(json_path, JSONFormatter()))

    logger.propagate = False
    if relocated:
        logger.warning(
            "Log directory under %s is not writable; logging to %s instead",
            log_root,
            relocated[0].parent,
        )
    return log_path


def configure_logging(settings: LeylineSettings, console: bool = True) -> Path:
    """Apply environment-derived settings to logging and the cache warning hook."""
    error_handler.configure(settings.cache_warnings)
    return setup_logging(
        settings.cache_dir,
        level=settings.log_level,
        structured=settings.structured_logging,
        console=console,
    )


def _resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.WARNING)
    return int(level)


def _resolve_log_path(log_root: Path, subpath: Path, relocated: List[Path]) -> Path:
    primary = Path(log_root) / subpath
    try:
        primary.parent.mkdir(parents=True, exist_ok=True)
        return primary
    except PermissionError:
        fallback = FALLBACK_ROOT / subpath
        fallback.parent.mkdir(parents=True, exist_ok=True)
        relocated.append(fallback)
        return fallback


def _rotating_handler(path: Path, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setFormatter(formatter)
    return handler


def _reset_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


__all__ = [
    "setup_logging",
    "configure_logging",
    "JSONFormatter",
    "LOG_SUBPATH",
    "STRUCTURED_LOG_SUBPATH",
    "FALLBACK_ROOT",
]
