"""File and manifest comparison."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from ..cache.file_cache import FileCache, NullCache
from ..configuration import DEFAULT_DOCS_PATH
from ..errors import CacheError, ComparisonError
from ..hashing import hash_content
from .manifest import CategoryScope, ComparisonResult, Manifest, compare_manifests, iter_tree_files, normalize_path
from .remote import EmptyRemote, RemoteSource

logger = logging.getLogger("leyline.sync.comparator")

PathLike = Union[str, Path]


@dataclass
class DiffData:
    """Side-by-side facts about two existing files."""

    file_a: Path
    file_b: Path
    identical: bool
    size_a: int
    size_b: int
    hash_a: str
    hash_b: str
    mtime_a: datetime
    mtime_b: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_a": str(self.file_a),
            "file_b": str(self.file_b),
            "identical": self.identical,
            "size_a": self.size_a,
            "size_b": self.size_b,
            "hash_a": self.hash_a,
            "hash_b": self.hash_b,
            "mtime_a": self.mtime_a.isoformat(),
            "mtime_b": self.mtime_b.isoformat(),
        }


class FileComparator:
    """Hashes files, compares them, and diffs manifests.

    Content that gets hashed is also stored in the content cache, when one is
    configured, so a later sync can be served without fetching it again.
    """

    def __init__(
        self,
        cache: Optional[FileCache] = None,
        remote: Optional[RemoteSource] = None,
        docs_path: str = DEFAULT_DOCS_PATH,
    ) -> None:
        self.cache = cache if cache is not None else NullCache()
        self.remote = remote if remote is not None else EmptyRemote()
        self.docs_path = docs_path

    def content_hash(self, file_path: PathLike) -> str:
        """SHA-256 of a file's bytes; raises ComparisonError when unreadable."""
        path = Path(file_path)
        try:
            content = path.read_bytes()
        except FileNotFoundError as exc:
            raise ComparisonError(
                f"File does not exist: {path}",
                operation="content_hash",
                context={"path": path, "reason": "file_not_found"},
            ) from exc
        except PermissionError as exc:
            raise ComparisonError(
                f"Permission denied reading {path}",
                operation="content_hash",
                context={"path": path, "reason": "permission_denied"},
            ) from exc
        except OSError as exc:
            raise ComparisonError(
                f"Failed to read file {path}: {exc}",
                operation="content_hash",
                context={"path": path},
            ) from exc

        digest = hash_content(content)
        try:
            self.cache.put(content)
        except CacheError:
            # already reported by the cache; hashing does not depend on it
            pass
        return digest

    def files_identical(self, file_a: PathLike, file_b: PathLike) -> bool:
        """True when both files exist and hold the same bytes."""
        path_a, path_b = Path(file_a), Path(file_b)
        if not (path_a.is_file() and path_b.is_file()):
            return False
        if path_a == path_b:
            return True

        try:
            if path_a.stat().st_size != path_b.stat().st_size:
                return False
            return self.content_hash(path_a) == self.content_hash(path_b)
        except (OSError, ComparisonError) as exc:
            logger.debug("Treating %s and %s as different: %s", path_a, path_b, exc)
            return False

    def create_manifest(
        self,
        file_paths: Iterable[PathLike],
        root: Optional[PathLike] = None,
    ) -> Manifest:
        """Hash each path; unreadable or missing paths are skipped with a warning.

        Keys are the given paths (relative to ``root`` when one is passed).
        """
        manifest: Manifest = {}
        for file_path in file_paths:
            key, full_path = self._locate(file_path, root)
            if not full_path.exists():
                logger.warning("Skipping missing file %s", full_path)
                continue
            try:
                manifest[key] = self.content_hash(full_path)
            except ComparisonError as exc:
                logger.warning("Could not hash file %s: %s", full_path, exc.message)
        return manifest

    def tree_manifest(self, root: PathLike, scope: Optional[CategoryScope] = None) -> Manifest:
        """Manifest of a directory keyed by relative path."""
        root_path = Path(root)
        if not root_path.is_dir():
            return {}
        entries = scope.iter_files(root_path) if scope else iter_tree_files(root_path)
        return self.create_manifest((rel_path for rel_path, _ in entries), root=root_path)

    def detect_modifications(
        self,
        base_manifest: Optional[Mapping[str, str]],
        current_files: Optional[Iterable[PathLike]],
        root: Optional[PathLike] = None,
    ) -> List[str]:
        """Paths that are new or whose content changed relative to ``base_manifest``.

        Paths present only in the base manifest are not reported; use
        :meth:`SyncState.compare_with_current_files` for removals.
        """
        if base_manifest is None or current_files is None:
            return []

        modifications: List[str] = []
        for file_path in current_files:
            key, full_path = self._locate(file_path, root)
            if not full_path.is_file():
                continue
            try:
                current_hash = self.content_hash(full_path)
            except ComparisonError as exc:
                logger.warning("Could not hash file %s: %s", full_path, exc.message)
                continue
            if base_manifest.get(key) != current_hash:
                modifications.append(key)
        return modifications

    def generate_diff_data(self, file_a: PathLike, file_b: PathLike) -> DiffData:
        """Compare two files that must both exist."""
        path_a, path_b = Path(file_a), Path(file_b)
        for label, path in (("A", path_a), ("B", path_b)):
            if not path.exists():
                raise ComparisonError(
                    f"File {label} does not exist: {path}",
                    operation="generate_diff_data",
                    context={"file_a": path_a, "file_b": path_b},
                )

        try:
            stat_a, stat_b = path_a.stat(), path_b.stat()
            hash_a = self.content_hash(path_a)
            hash_b = self.content_hash(path_b)
        except OSError as exc:
            raise ComparisonError(
                f"Failed to compare files: {path_a} and {path_b}",
                operation="generate_diff_data",
                context={"file_a": path_a, "file_b": path_b, "reason": str(exc)},
            ) from exc

        return DiffData(
            file_a=path_a,
            file_b=path_b,
            identical=stat_a.st_size == stat_b.st_size and hash_a == hash_b,
            size_a=stat_a.st_size,
            size_b=stat_b.st_size,
            hash_a=hash_a,
            hash_b=hash_b,
            mtime_a=datetime.fromtimestamp(stat_a.st_mtime, tz=timezone.utc),
            mtime_b=datetime.fromtimestamp(stat_b.st_mtime, tz=timezone.utc),
        )

    def compare_with_remote(self, local_root: PathLike, category: Optional[str]) -> ComparisonResult:
        """Compare the local documents of a category against the remote manifest.

        Local-only paths are ``removed`` and remote-only paths are ``added``.
        """
        root = Path(local_root)
        if not root.is_dir():
            raise ComparisonError(
                f"Local path does not exist: {root}",
                operation="compare_with_remote",
            )
        if category is None or not str(category).strip():
            raise ComparisonError(
                "Category cannot be nil or empty",
                operation="compare_with_remote",
            )

        scope = CategoryScope.of([category])
        local_manifest = self.tree_manifest(root / self.docs_path, scope)
        remote_manifest = scope.filter(self.remote.manifest(scope.categories))
        logger.debug(
            "Comparing %d local against %d remote files for '%s'",
            len(local_manifest),
            len(remote_manifest),
            category,
        )
        return compare_manifests(local_manifest, remote_manifest)

    @staticmethod
    def _locate(file_path: PathLike, root: Optional[PathLike]) -> Tuple[str, Path]:
        if root is None:
            return normalize_path(file_path), Path(file_path)
        key = normalize_path(file_path)
        return key, Path(root) / key


__all__ = ["FileComparator", "DiffData"]
