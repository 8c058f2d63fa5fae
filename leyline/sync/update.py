"""Plan and apply upstream updates without losing local edits."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Union

from ..cache.file_cache import FileCache, NullCache
from ..configuration import DEFAULT_DOCS_PATH
from ..errors import CacheError, ComparisonError, ConflictDetectedError
from ..hashing import hash_content
from .comparator import FileComparator
from .manifest import CategoryScope, Manifest, compare_manifests
from .remote import RemoteSource
from .state import SyncState
from .syncer import SyncFailure, SyncResult

logger = logging.getLogger("leyline.sync.update")


class ConflictType(str, Enum):
    """Ways local and upstream changes can collide."""
    BOTH_MODIFIED = "both_modified"
    LOCAL_ADDED_REMOTE_MODIFIED = "local_added_remote_modified"


@dataclass
class Conflict:
    """A path changed both locally and upstream."""

    path: str
    type: ConflictType
    local_hash: Optional[str] = None
    remote_hash: Optional[str] = None

    @property
    def resolution_options(self) -> List[str]:
        return ["keep_local", "use_remote", "merge"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "type": self.type.value,
            "resolution_options": self.resolution_options,
        }


@dataclass
class UpdatePlan:
    """What applying upstream content would change."""

    added: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    kept_local: List[str] = field(default_factory=list)
    conflicts: List[Conflict] = field(default_factory=list)
    baseline_exists: bool = False
    categories: List[str] = field(default_factory=list)
    remote_manifest: Manifest = field(default_factory=dict, repr=False)

    @property
    def total_changes(self) -> int:
        return len(self.added) + len(self.modified) + len(self.removed)

    @property
    def conflicted(self) -> bool:
        return bool(self.conflicts)

    @property
    def status(self) -> str:
        if self.conflicts:
            return "Updates available with conflicts"
        if self.total_changes:
            return "Updates available"
        return "Up to date"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": {
                "status": self.status,
                "total_changes": self.total_changes,
                "added_files": len(self.added),
                "modified_files": len(self.modified),
                "removed_files": len(self.removed),
            },
            "changes": {
                "added": list(self.added),
                "modified": list(self.modified),
                "removed": list(self.removed),
                "kept_local": list(self.kept_local),
            },
            "conflicts": [conflict.to_dict() for conflict in self.conflicts],
            "metadata": {
                "baseline_exists": self.baseline_exists,
                "categories": list(self.categories),
            },
        }


class UpdatePlanner:
    """Three-way comparison of baseline (last sync), local files and upstream."""

    def __init__(
        self,
        project_dir: Union[str, Path],
        remote: RemoteSource,
        state: SyncState,
        comparator: Optional[FileComparator] = None,
        categories: Optional[Iterable[str]] = None,
        docs_path: str = DEFAULT_DOCS_PATH,
        cache: Optional[FileCache] = None,
    ) -> None:
        self.project_dir = Path(project_dir)
        self.docs_dir = self.project_dir / docs_path
        self.remote = remote
        self.state = state
        self.cache = cache if cache is not None else NullCache()
        self.comparator = comparator or FileComparator(cache=self.cache, remote=remote, docs_path=docs_path)
        self.scope = CategoryScope.of(list(categories) if categories is not None else None)

    def plan(self) -> UpdatePlan:
        local_manifest = self.comparator.tree_manifest(self.docs_dir, self.scope)
        remote_manifest = self.scope.filter(self.remote.manifest(self.scope.categories))
        differences = compare_manifests(local_manifest, remote_manifest)

        plan = UpdatePlan(
            added=sorted(differences.added),
            removed=sorted(differences.removed),
            categories=list(self.scope.categories),
            remote_manifest=remote_manifest,
        )

        baseline = self.state.load_sync_state()
        if baseline is None:
            plan.modified = sorted(differences.modified)
            return plan

        plan.baseline_exists = True
        base = baseline.manifest
        local_edits: Set[str] = set(
            self.comparator.detect_modifications(base, local_manifest.keys(), root=self.docs_dir)
        )

        for path in sorted(differences.modified):
            remote_changed = base.get(path) != remote_manifest[path]
            if path not in local_edits:
                plan.modified.append(path)
            elif path not in base:
                plan.conflicts.append(
                    Conflict(
                        path=path,
                        type=ConflictType.LOCAL_ADDED_REMOTE_MODIFIED,
                        local_hash=local_manifest[path],
                        remote_hash=remote_manifest[path],
                    )
                )
            elif remote_changed:
                plan.conflicts.append(
                    Conflict(
                        path=path,
                        type=ConflictType.BOTH_MODIFIED,
                        local_hash=local_manifest[path],
                        remote_hash=remote_manifest[path],
                    )
                )
            else:
                plan.kept_local.append(path)

        logger.info(
            "Update plan: %s (%d conflicts)",
            plan.status,
            len(plan.conflicts),
        )
        return plan

    def apply(self, plan: UpdatePlan, force: bool = False, record_state: bool = True) -> SyncResult:
        """Write added and modified files from upstream.

        Conflicting paths are overwritten only with ``force``; otherwise
        :class:`ConflictDetectedError` is raised before anything is written.
        Local files missing upstream are reported, never deleted.
        """
        if plan.conflicts and not force:
            raise ConflictDetectedError(plan.conflicts, operation="update")

        paths = plan.added + plan.modified
        if force:
            paths += [conflict.path for conflict in plan.conflicts]

        result = SyncResult()
        for rel_path in paths:
            target = self.docs_dir / rel_path
            try:
                content = self.remote.fetch(rel_path)
                expected = plan.remote_manifest.get(rel_path)
                if expected and hash_content(content) != expected:
                    raise ComparisonError(f"Upstream content changed while updating {rel_path}")
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(content)
            except (OSError, ComparisonError) as exc:
                logger.error("Failed to update %s: %s", rel_path, exc)
                result.errors.append(SyncFailure(path=rel_path, error=str(exc)))
                continue
            result.copied.append(rel_path)
            try:
                self.cache.put(content)
            except CacheError:
                pass

        result.skipped.extend(plan.kept_local)

        if record_state and result.success:
            self.state.save_sync_state(
                {
                    "categories": list(self.scope.categories),
                    "manifest": plan.remote_manifest,
                    "source_version": self.remote.version,
                }
            )
        return result


__all__ = ["UpdatePlanner", "UpdatePlan", "Conflict", "ConflictType"]
