"""Manifest comparison, sync state and file synchronization for leyline."""

from __future__ import annotations

from .manifest import CategoryScope, ComparisonResult, Manifest, compare_manifests, normalize_path
from .remote import DirectoryRemote, EmptyRemote, RemoteSource
from .comparator import DiffData, FileComparator
from .state import SyncState, SyncStateRecord
from .syncer import FileSyncer, SyncFailure, SyncResult
from .update import Conflict, ConflictType, UpdatePlan, UpdatePlanner
from .status import StatusReport, gather_status

__all__ = [
    # Manifest
    "CategoryScope",
    "ComparisonResult",
    "Manifest",
    "compare_manifests",
    "normalize_path",
    # Remote
    "RemoteSource",
    "DirectoryRemote",
    "EmptyRemote",
    # Comparison
    "FileComparator",
    "DiffData",
    # State
    "SyncState",
    "SyncStateRecord",
    # Sync
    "FileSyncer",
    "SyncFailure",
    "SyncResult",
    # Update
    "UpdatePlanner",
    "UpdatePlan",
    "Conflict",
    "ConflictType",
    # Status
    "StatusReport",
    "gather_status",
]
