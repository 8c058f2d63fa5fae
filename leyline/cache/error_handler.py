"""Shared hook for reporting cache and state failures without interrupting a sync."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger("leyline.cache")

LARGE_CACHE_BYTES = 500 * 1024 * 1024

_enabled = True


def configure(enabled: bool) -> None:
    """Enable or silence cache warnings (``LEYLINE_CACHE_WARNINGS=false``)."""

    global _enabled
    _enabled = bool(enabled)


def warnings_enabled() -> bool:
    return _enabled


def warn(message: str, **context: Any) -> None:
    """Log a cache warning; the caller keeps going."""

    if not _enabled:
        return
    logger.warning("[Cache] %s", message, extra={"extra": _clean(context)})


def handle_error(error: BaseException, operation: str, **context: Any) -> None:
    """Log a failed cache/state operation with its context."""

    if not _enabled:
        return
    payload = _clean(context)
    payload["operation"] = operation
    payload["error_class"] = type(error).__name__
    logger.error(
        "[Cache] %s failed: %s",
        operation,
        error,
        extra={"extra": payload},
    )
    logger.debug("Traceback for %s", operation, exc_info=error)


def check_cache_health(cache_dir: Union[str, Path]) -> List[Dict[str, Any]]:
    """Return a list of problems with the cache directory (empty when healthy)."""

    path = Path(cache_dir)
    issues: List[Dict[str, Any]] = []

    if not path.is_dir():
        issues.append({"type": "missing_directory", "path": str(path)})
        return issues

    if not os.access(path, os.R_OK):
        issues.append({"type": "not_readable", "path": str(path)})
    if not os.access(path, os.W_OK):
        issues.append({"type": "not_writable", "path": str(path)})

    try:
        size = sum(entry.stat().st_size for entry in path.rglob("*") if entry.is_file())
    except OSError as exc:
        issues.append({"type": "stat_failed", "path": str(path), "error": str(exc)})
    else:
        if size > LARGE_CACHE_BYTES:
            issues.append({"type": "large_cache", "path": str(path), "size": size})

    return issues


def _clean(context: Dict[str, Any]) -> Dict[str, Any]:
    return {key: _stringify(value) for key, value in context.items() if value is not None}


def _stringify(value: Any) -> Optional[Any]:
    if isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


__all__ = ["configure", "warnings_enabled", "warn", "handle_error", "check_cache_health"]
