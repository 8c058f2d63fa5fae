"""Cache-aware copy of a fetched document tree into a project."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from ..cache.file_cache import FileCache, NullCache, is_active
from ..cache.stats import CacheStats, NullStats
from ..configuration import LeylineSettings
from ..errors import CacheError, SyncError
from ..hashing import hash_content
from .comparator import FileComparator
from .manifest import iter_tree_files, normalize_path
from .state import SyncState

logger = logging.getLogger("leyline.sync.syncer")

PathLike = Union[str, Path]


@dataclass
class SyncFailure:
    """A file that could not be copied."""

    path: str
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {"file": self.path, "error": self.error}


@dataclass
class SyncResult:
    """Outcome of one sync run."""

    copied: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    errors: List[SyncFailure] = field(default_factory=list)
    served_from_cache: bool = False
    cache_hit_ratio: Optional[float] = None

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "copied": list(self.copied),
            "skipped": list(self.skipped),
            "errors": [failure.to_dict() for failure in self.errors],
            "served_from_cache": self.served_from_cache,
            "cache_hit_ratio": self.cache_hit_ratio,
        }


class FileSyncer:
    """Copies ``source_dir`` into ``target_dir`` without clobbering local edits.

    A target file is overwritten only when ``force`` is set, when it does not
    exist yet, or when it already holds the same bytes. When the content cache
    covers enough of the source, and every target already matches, the run is
    answered from the cache alone.
    """

    def __init__(
        self,
        source_dir: PathLike,
        target_dir: PathLike,
        cache: Optional[FileCache] = None,
        stats: Optional[CacheStats] = None,
        settings: Optional[LeylineSettings] = None,
    ) -> None:
        self.source_dir = Path(source_dir)
        self.target_dir = Path(target_dir)
        self.cache = cache if cache is not None else NullCache()
        self.stats = stats if stats is not None else NullStats()
        self.settings = settings if settings is not None else LeylineSettings.from_env()
        self.comparator = FileComparator(cache=self.cache)

    def sync(self, force: bool = False, verbose: bool = False, force_git: bool = False) -> SyncResult:
        """Copy every source file; see the class docstring for the overwrite rules."""
        log = logger.info if verbose else logger.debug
        self.stats.start_sync_timing()

        if not self.source_dir.is_dir():
            raise SyncError(
                f"Source directory does not exist: {self.source_dir}",
                operation="sync",
            )
        if self.target_dir.name.startswith("-"):
            raise SyncError(
                f"Invalid target directory name '{self.target_dir.name}'. "
                "Directory names cannot start with a dash.",
                operation="sync",
            )
        try:
            self.target_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise SyncError(
                f"Cannot create target directory {self.target_dir}: {exc}",
                operation="sync",
            ) from exc

        source_files = [rel_path for rel_path, _ in iter_tree_files(self.source_dir)]
        result = SyncResult()

        if is_active(self.cache) and not force_git and source_files:
            check_started = time.monotonic()
            ratio = self.calculate_cache_hit_ratio(source_files, self.cache)
            self.stats.add_cache_check_time(time.monotonic() - check_started)
            result.cache_hit_ratio = ratio

            if not self.git_sync_needed(ratio):
                if self._targets_match(source_files):
                    log("Serving from cache (%.1f%% hit ratio)", ratio * 100)
                    self.stats.record_fetch_skipped()
                    result.skipped.extend(source_files)
                    result.served_from_cache = True
                    self.stats.end_sync_timing()
                    return result
                log(
                    "Cache hit ratio %.1f%% sufficient, but some target files differ. Proceeding with sync...",
                    ratio * 100,
                )
            else:
                log("Cache hit ratio %.1f%% below threshold, proceeding with sync...", ratio * 100)

        for rel_path in source_files:
            self._sync_file(rel_path, force, result)

        self.stats.end_sync_timing()
        log(
            "Sync completed: %d copied, %d skipped, %d errors",
            len(result.copied),
            len(result.skipped),
            len(result.errors),
        )
        return result

    def sync_and_record(
        self,
        state: SyncState,
        categories: Sequence[str],
        source_version: Optional[str] = None,
        force: bool = True,
        verbose: bool = False,
        force_git: bool = False,
    ) -> SyncResult:
        """Run :meth:`sync` and save a new state record if no file failed.

        A run with errors leaves the previous state untouched.
        """
        started = time.monotonic()
        result = self.sync(force=force, verbose=verbose, force_git=force_git)
        if result.errors:
            logger.warning(
                "Not saving sync state: %d file(s) failed to sync",
                len(result.errors),
            )
            return result

        manifest = self.comparator.create_manifest(result.copied + result.skipped, root=self.target_dir)
        state.save_sync_state(
            {
                "categories": list(categories),
                "manifest": manifest,
                "source_version": source_version,
                "cache_hit_ratio": result.cache_hit_ratio,
                "sync_duration_ms": round((time.monotonic() - started) * 1000, 2),
            }
        )
        return result

    def calculate_cache_hit_ratio(
        self,
        target_files: Sequence[PathLike],
        cache: Optional[FileCache],
    ) -> float:
        """Fraction of source files whose content is already cached (0.0 to 1.0)."""
        if not is_active(cache) or not target_files:
            return 0.0

        hits = 0
        for rel_path in target_files:
            source_path = self.source_dir / normalize_path(rel_path)
            try:
                digest = hash_content(source_path.read_bytes())
                cached = cache.get(digest)
            except (OSError, CacheError) as exc:
                logger.debug("Counting %s as a cache miss: %s", rel_path, exc)
                cached = None

            if cached is not None:
                hits += 1
                self.stats.record_cache_hit()
            else:
                self.stats.record_cache_miss()

        return hits / len(target_files)

    def git_sync_needed(
        self,
        cache_hit_ratio: float,
        force_git: bool = False,
        threshold: Optional[float] = None,
    ) -> bool:
        """Whether a real remote fetch is required for this hit ratio."""
        if force_git:
            return True
        limit = self.settings.cache_threshold if threshold is None else threshold
        return cache_hit_ratio < limit

    def _targets_match(self, source_files: Iterable[str]) -> bool:
        for rel_path in source_files:
            if not self.comparator.files_identical(self.source_dir / rel_path, self.target_dir / rel_path):
                return False
        return True

    def _sync_file(self, rel_path: str, force: bool, result: SyncResult) -> None:
        source_path = self.source_dir / rel_path
        target_path = self.target_dir / rel_path

        target_existed = target_path.exists()
        if target_existed:
            if self.comparator.files_identical(source_path, target_path):
                result.skipped.append(rel_path)
                return
            if not force:
                logger.debug("Keeping local changes in %s", target_path)
                result.skipped.append(rel_path)
                return

        try:
            content = source_path.read_bytes()
            target_path.parent.mkdir(parents=True, exist_ok=True)
            target_path.write_bytes(content)
        except OSError as exc:
            logger.error("Failed to copy %s: %s", rel_path, exc)
            result.errors.append(SyncFailure(path=rel_path, error=str(exc)))
            return

        result.copied.append(rel_path)
        if not is_active(self.cache):
            return
        try:
            self.cache.put(content)
            self.stats.record_cache_put()
        except CacheError:
            # reported by the cache; the copy itself succeeded
            pass


__all__ = ["FileSyncer", "SyncResult", "SyncFailure"]
