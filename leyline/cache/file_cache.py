"""Content-addressable file cache."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..configuration import LeylineSettings, resolve_cache_dir
from ..errors import CacheError
from ..hashing import hash_content, is_content_hash
from . import error_handler

logger = logging.getLogger("leyline.cache.file_cache")

CONTENT_SUBDIR = "content"
# Soft budget used to report utilization, not enforced.
CACHE_BUDGET_BYTES = 50 * 1024 * 1024


class FileCache:
    """Stores blobs on disk under their SHA-256 digest.

    Identical content is stored once. Entries are immutable: ``put`` never
    rewrites an existing blob, and ``get`` re-hashes what it reads so a
    damaged entry is reported instead of returned.
    """

    def __init__(
        self,
        cache_dir: Optional[Union[str, Path]] = None,
        settings: Optional[LeylineSettings] = None,
    ) -> None:
        if cache_dir is None and settings is not None:
            cache_dir = settings.cache_dir
        self.cache_dir = resolve_cache_dir(cache_dir)
        self.content_dir = self.cache_dir / CONTENT_SUBDIR
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._puts = 0

    @property
    def hits(self) -> int:
        return self._hits

    @property
    def misses(self) -> int:
        return self._misses

    @property
    def puts(self) -> int:
        return self._puts

    @property
    def hit_ratio(self) -> float:
        with self._lock:
            total = self._hits + self._misses
            return self._hits / total if total else 0.0

    def entry_path(self, content_hash: str) -> Path:
        return self.content_dir / content_hash[:2] / content_hash[2:]

    def put(self, content: Union[bytes, str]) -> str:
        """Store content if it is not cached yet and return its hash."""
        if isinstance(content, str):
            content = content.encode("utf-8")
        content_hash = hash_content(content)
        target = self.entry_path(content_hash)
        if self._entry_exists(target, "put"):
            return content_hash

        tmp_name: Optional[str] = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".put-", suffix=".tmp")
            with os.fdopen(fd, "wb") as handle:
                handle.write(content)
            # Another writer may have stored the same blob meanwhile; same bytes either way.
            os.replace(tmp_name, target)
            tmp_name = None
        except OSError as exc:
            error_handler.handle_error(exc, "cache_put", cache_path=target)
            raise CacheError(
                f"Failed to write cache entry {content_hash[:12]}: {exc}",
                cache_path=target,
                operation="put",
            ) from exc
        finally:
            if tmp_name is not None:
                _discard(Path(tmp_name))

        with self._lock:
            self._puts += 1
        logger.debug("Cached %s (%d bytes)", content_hash[:12], len(content))
        return content_hash

    def get(self, content_hash: str) -> Optional[bytes]:
        """Return cached content for a hash, or ``None`` when absent."""
        if not is_content_hash(content_hash):
            self._record(hit=False)
            return None

        target = self.entry_path(content_hash)
        try:
            data = target.read_bytes()
        except FileNotFoundError:
            self._record(hit=False)
            return None
        except OSError as exc:
            self._record(hit=False)
            error_handler.handle_error(exc, "cache_get", cache_path=target)
            raise CacheError(
                f"Failed to read cache entry {content_hash[:12]}: {exc}",
                cache_path=target,
                operation="get",
            ) from exc

        if hash_content(data) != content_hash:
            self._record(hit=False)
            error_handler.warn("Removing corrupted cache entry", cache_path=target)
            _discard(target)
            raise CacheError(
                f"Corrupted cache entry {content_hash[:12]}",
                cache_path=target,
                operation="get",
            )

        self._record(hit=True)
        return data

    def contains(self, content_hash: str) -> bool:
        if not is_content_hash(content_hash):
            return False
        return self._entry_exists(self.entry_path(content_hash), "contains")

    def clear(self) -> None:
        """Remove every cached entry."""
        if not self.content_dir.exists():
            return
        try:
            shutil.rmtree(self.content_dir)
        except OSError as exc:
            error_handler.handle_error(exc, "cache_clear", cache_path=self.content_dir)
            raise CacheError(
                f"Failed to clear cache: {exc}",
                cache_path=self.content_dir,
                operation="clear",
            ) from exc
        logger.info("Cleared cache at %s", self.content_dir)

    def health_status(self) -> Dict[str, Any]:
        issues = error_handler.check_cache_health(self.cache_dir)
        return {"healthy": not issues, "issues": issues}

    def directory_stats(self) -> Dict[str, Any]:
        size = 0
        file_count = 0
        if self.content_dir.exists():
            for entry in self.content_dir.rglob("*"):
                try:
                    if entry.is_file():
                        size += entry.stat().st_size
                        file_count += 1
                except OSError as exc:
                    error_handler.warn("Could not stat cache entry", cache_path=entry, error=exc)
        return {
            "path": str(self.cache_dir),
            "size": size,
            "file_count": file_count,
            "utilization_percent": round(size / CACHE_BUDGET_BYTES * 100, 1),
        }

    def _entry_exists(self, target: Path, operation: str) -> bool:
        try:
            return target.is_file()
        except OSError as exc:
            error_handler.handle_error(exc, f"cache_{operation}", cache_path=target)
            raise CacheError(
                f"Cannot access cache entry {target.name[:10]}: {exc}",
                cache_path=target,
                operation=operation,
            ) from exc

    def _record(self, *, hit: bool) -> None:
        with self._lock:
            if hit:
                self._hits += 1
            else:
                self._misses += 1


class NullCache(FileCache):
    """Cache stand-in that stores nothing; used when the cache is bypassed."""

    def __init__(self) -> None:
        self.cache_dir = Path(os.devnull)
        self.content_dir = self.cache_dir
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._puts = 0

    def put(self, content: Union[bytes, str]) -> str:
        return hash_content(content)

    def get(self, content_hash: str) -> Optional[bytes]:
        return None

    def contains(self, content_hash: str) -> bool:
        return False

    def clear(self) -> None:
        pass

    def health_status(self) -> Dict[str, Any]:
        return {"healthy": True, "issues": []}

    def directory_stats(self) -> Dict[str, Any]:
        return {}


def is_active(cache: Optional[FileCache]) -> bool:
    """True when ``cache`` actually stores content."""
    return cache is not None and not isinstance(cache, NullCache)


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove %s: %s", path, exc)


__all__ = ["FileCache", "NullCache", "is_active", "CONTENT_SUBDIR"]
