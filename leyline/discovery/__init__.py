"""Document discovery and cache warm-up."""

from __future__ import annotations

from .index import DocumentEntry, DocumentIndex, IndexStats
from .warmup import CacheWarmer, WarmupStatus

__all__ = [
    "DocumentEntry",
    "DocumentIndex",
    "IndexStats",
    "CacheWarmer",
    "WarmupStatus",
]
