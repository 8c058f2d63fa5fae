"""Summary of sync state and local changes for a project."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..configuration import DEFAULT_DOCS_PATH
from .comparator import FileComparator
from .manifest import CategoryScope
from .state import SyncState

logger = logging.getLogger("leyline.sync.status")


@dataclass
class StatusReport:
    """Where a project stands relative to its last successful sync."""

    project_dir: Path
    state_exists: bool = False
    last_sync: Optional[str] = None
    synced_version: Optional[str] = None
    synced_categories: List[str] = field(default_factory=list)
    state_age_seconds: Optional[float] = None
    added: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)

    @property
    def total_changes(self) -> int:
        return len(self.added) + len(self.modified) + len(self.removed)

    @property
    def has_local_changes(self) -> bool:
        return self.total_changes > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_dir": str(self.project_dir),
            "sync_state": {
                "exists": self.state_exists,
                "last_sync": self.last_sync,
                "synced_version": self.synced_version,
                "synced_categories": list(self.synced_categories),
                "age_seconds": self.state_age_seconds,
            },
            "local_changes": {
                "added": list(self.added),
                "modified": list(self.modified),
                "removed": list(self.removed),
                "unchanged": list(self.unchanged),
                "total_changes": self.total_changes,
            },
        }


def gather_status(
    project_dir: Union[str, Path],
    state: SyncState,
    comparator: Optional[FileComparator] = None,
    docs_path: str = DEFAULT_DOCS_PATH,
) -> StatusReport:
    """Compare the project's documents with the stored manifest.

    Without a stored state every local document counts as unchanged, since
    there is nothing to compare against.
    """
    project_path = Path(project_dir)
    comparator = comparator or FileComparator(docs_path=docs_path)
    report = StatusReport(project_dir=project_path)

    record = state.load_sync_state()
    scope = CategoryScope.of(record.categories if record else None)
    current = comparator.tree_manifest(project_path / docs_path, scope)

    if record is None:
        report.unchanged = sorted(current)
        return report

    report.state_exists = True
    report.last_sync = record.timestamp
    report.synced_version = record.source_version
    report.synced_categories = list(record.categories)
    report.state_age_seconds = state.state_age_seconds()

    comparison = state.compare_with_current_files(current)
    if comparison is not None:
        report.added = sorted(comparison.added)
        report.modified = sorted(comparison.modified)
        report.removed = sorted(comparison.removed)
        report.unchanged = sorted(comparison.unchanged)

    logger.debug("Status for %s: %d local change(s)", project_path, report.total_changes)
    return report


__all__ = ["StatusReport", "gather_status"]
