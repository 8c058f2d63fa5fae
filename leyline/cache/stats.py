"""Sync performance counters."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

# Rough cost of a remote fetch that a cache-served sync avoids.
FETCH_SECONDS_ESTIMATE = 4.0


@dataclass
class CacheStats:
    """Collects cache hits, misses and timings for one sync run."""

    cache_hits: int = 0
    cache_misses: int = 0
    cache_puts: int = 0
    fetch_skipped: bool = False
    sync_start_time: Optional[float] = None
    sync_end_time: Optional[float] = None
    cache_check_time: float = 0.0

    def record_cache_hit(self) -> None:
        self.cache_hits += 1

    def record_cache_miss(self) -> None:
        self.cache_misses += 1

    def record_cache_put(self) -> None:
        self.cache_puts += 1

    def record_fetch_skipped(self) -> None:
        self.fetch_skipped = True

    def start_sync_timing(self) -> None:
        self.sync_start_time = time.monotonic()
        self.sync_end_time = None

    def end_sync_timing(self) -> None:
        self.sync_end_time = time.monotonic()

    def add_cache_check_time(self, seconds: float) -> None:
        self.cache_check_time += seconds

    @property
    def total_operations(self) -> int:
        return self.cache_hits + self.cache_misses

    @property
    def cache_hit_ratio(self) -> float:
        if self.total_operations == 0:
            return 0.0
        return self.cache_hits / self.total_operations

    @property
    def total_sync_time(self) -> float:
        if self.sync_start_time is None or self.sync_end_time is None:
            return 0.0
        return self.sync_end_time - self.sync_start_time

    @property
    def time_saved_estimate(self) -> float:
        return FETCH_SECONDS_ESTIMATE if self.fetch_skipped else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "cache_puts": self.cache_puts,
            "cache_hit_ratio": self.cache_hit_ratio,
            "fetch_skipped": self.fetch_skipped,
            "total_sync_time": self.total_sync_time,
            "cache_check_time": self.cache_check_time,
            "estimated_time_saved": self.time_saved_estimate,
        }


class NullStats(CacheStats):
    """Stats collector that records nothing."""

    def record_cache_hit(self) -> None:
        pass

    def record_cache_miss(self) -> None:
        pass

    def record_cache_put(self) -> None:
        pass

    def record_fetch_skipped(self) -> None:
        pass

    def start_sync_timing(self) -> None:
        pass

    def end_sync_timing(self) -> None:
        pass

    def add_cache_check_time(self, seconds: float) -> None:
        pass


def format_bytes(size: int) -> str:
    """Format a byte count in human-readable form."""
    if size < 1024:
        return f"{size} B"
    elif size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    elif size < 1024 * 1024 * 1024:
        return f"{size / (1024 * 1024):.1f} MB"
    else:
        return f"{size / (1024 * 1024 * 1024):.1f} GB"


__all__ = ["CacheStats", "NullStats", "format_bytes", "FETCH_SECONDS_ESTIMATE"]
