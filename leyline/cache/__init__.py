"""Content cache and sync statistics."""

from __future__ import annotations

from .file_cache import FileCache, NullCache, is_active
from .stats import CacheStats, NullStats

__all__ = [
    "FileCache",
    "NullCache",
    "is_active",
    "CacheStats",
    "NullStats",
]
