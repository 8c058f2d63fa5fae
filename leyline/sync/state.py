"""Durable record of the last successful sync."""

from __future__ import annotations

import logging
import os
import tempfile
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from .. import __version__
from ..cache import error_handler
from ..configuration import LeylineSettings, resolve_cache_dir
from ..errors import SyncStateError, ValidationError
from ..hashing import is_content_hash
from .manifest import ComparisonResult, Manifest, compare_manifests

logger = logging.getLogger("leyline.sync.state")

SCHEMA_VERSION = 1
STATE_FILENAME = "sync_state.yaml"
REQUIRED_KEYS = ("version", "timestamp", "categories", "manifest")


def _number_or_none(value: Any) -> Optional[float]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return None


@dataclass
class SyncStateRecord:
    """A parsed, fully validated state file."""

    schema_version: int
    timestamp: str
    categories: List[str]
    manifest: Manifest
    source_version: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def total_files(self) -> int:
        value = self.metadata.get("total_files")
        if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
            return value
        return len(self.manifest)

    @property
    def cache_hit_ratio(self) -> Optional[float]:
        return _number_or_none(self.metadata.get("cache_hit_ratio"))

    @property
    def sync_duration_ms(self) -> Optional[float]:
        return _number_or_none(self.metadata.get("sync_duration_ms"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.schema_version,
            "timestamp": self.timestamp,
            "source_version": self.source_version,
            "categories": list(self.categories),
            "manifest": dict(self.manifest),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SyncStateRecord":
        metadata = data.get("metadata") or {}
        source_version = data.get("source_version")
        return cls(
            schema_version=data["version"],
            timestamp=str(data["timestamp"]),
            categories=list(data["categories"]),
            manifest=dict(data["manifest"]),
            source_version=str(source_version) if source_version is not None else None,
            metadata=dict(metadata) if isinstance(metadata, Mapping) else {},
        )


class SyncState:
    """Reads and atomically writes ``sync_state.yaml`` in the cache directory."""

    def __init__(
        self,
        cache_dir: Optional[Union[str, Path]] = None,
        settings: Optional[LeylineSettings] = None,
    ) -> None:
        if cache_dir is None and settings is not None:
            cache_dir = settings.cache_dir
        self.cache_dir = resolve_cache_dir(cache_dir)
        self._state_file_path = self.cache_dir / STATE_FILENAME

    @property
    def state_file_path(self) -> Path:
        return self._state_file_path

    def save_sync_state(self, metadata: Optional[Mapping[str, Any]]) -> bool:
        """Validate and persist a new state, replacing any previous one.

        ``metadata`` needs ``categories`` and ``manifest``; ``source_version``,
        ``cache_hit_ratio`` and ``sync_duration_ms`` are optional.
        """
        self._validate_metadata(metadata)
        document = self._build_document(metadata)
        payload = yaml.safe_dump(document, sort_keys=False, default_flow_style=False)

        temp_path: Optional[Path] = None
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(
                dir=self.cache_dir, prefix=f".{STATE_FILENAME}.", suffix=".tmp"
            )
            temp_path = Path(temp_name)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, self._state_file_path)
        except OSError as exc:
            if temp_path is not None:
                self._remove_quietly(temp_path)
            error_handler.handle_error(exc, "save_sync_state", state_file=self._state_file_path)
            raise SyncStateError(
                f"Failed to save sync state to {self._state_file_path}: {exc}",
                state_file=self._state_file_path,
                operation="save_sync_state",
            ) from exc

        logger.debug(
            "Saved sync state to %s (%d files)",
            self._state_file_path,
            len(document["manifest"]),
        )
        return True

    def load_sync_state(self) -> Optional[SyncStateRecord]:
        """Return the stored state, or ``None`` when there is no usable state.

        A missing, unparsable, incomplete or newer-schema file all mean the
        caller has to do a full sync.
        """
        if not self.state_exists():
            return None

        try:
            content = self._state_file_path.read_text(encoding="utf-8")
            data = yaml.safe_load(content)
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
            error_handler.handle_error(exc, "load_sync_state", state_file=self._state_file_path)
            return None

        problem = self._structure_problem(data)
        if problem:
            error_handler.warn(
                f"Ignoring sync state: {problem}",
                state_file=self._state_file_path,
            )
            return None

        return SyncStateRecord.from_dict(data)

    def state_exists(self) -> bool:
        return self._state_file_path.is_file()

    def clear_sync_state(self) -> bool:
        """Remove the state file; succeeds when nothing was there."""
        try:
            self._state_file_path.unlink()
        except FileNotFoundError:
            return True
        except OSError as exc:
            error_handler.handle_error(exc, "clear_sync_state", state_file=self._state_file_path)
            raise SyncStateError(
                f"Failed to clear sync state at {self._state_file_path}: {exc}",
                state_file=self._state_file_path,
                operation="clear_sync_state",
            ) from exc
        logger.info("Cleared sync state at %s", self._state_file_path)
        return True

    def state_age_seconds(self) -> Optional[float]:
        try:
            return max(0.0, time.time() - self._state_file_path.stat().st_mtime)
        except OSError:
            return None

    def compare_with_current_files(self, current_manifest: Mapping[str, str]) -> Optional[ComparisonResult]:
        """Classify the current manifest against the stored one, if any."""
        state = self.load_sync_state()
        if state is None:
            return None

        result = compare_manifests(state.manifest, current_manifest)
        result.base_timestamp = state.timestamp
        result.base_version = state.source_version
        result.base_categories = list(state.categories)
        return result

    @staticmethod
    def _validate_metadata(metadata: Optional[Mapping[str, Any]]) -> None:
        if metadata is None:
            raise ValidationError("Metadata cannot be nil", operation="save_sync_state")
        if not isinstance(metadata, Mapping):
            raise ValidationError("Metadata must be a mapping", operation="save_sync_state")

        categories = metadata.get("categories")
        if not isinstance(categories, (list, tuple)) or not all(isinstance(c, str) for c in categories):
            raise ValidationError("Categories must be a list of strings", operation="save_sync_state")

        manifest = metadata.get("manifest")
        if not isinstance(manifest, Mapping):
            raise ValidationError("Manifest must be a mapping", operation="save_sync_state")

        for file_path, digest in manifest.items():
            if not isinstance(file_path, str):
                raise ValidationError(f"Invalid manifest path: {file_path!r}", operation="save_sync_state")
            if not is_content_hash(digest):
                raise ValidationError(
                    f"Invalid hash for file {file_path}: {digest}",
                    operation="save_sync_state",
                )

    @staticmethod
    def _build_document(metadata: Mapping[str, Any]) -> Dict[str, Any]:
        manifest = dict(metadata["manifest"])
        extra: Dict[str, Any] = {"total_files": len(manifest)}
        if metadata.get("cache_hit_ratio") is not None:
            extra["cache_hit_ratio"] = float(metadata["cache_hit_ratio"])
        if metadata.get("sync_duration_ms") is not None:
            extra["sync_duration_ms"] = float(metadata["sync_duration_ms"])

        return {
            "version": SCHEMA_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "source_version": str(metadata.get("source_version") or __version__),
            "categories": list(metadata["categories"]),
            "manifest": manifest,
            "metadata": extra,
        }

    @staticmethod
    def _structure_problem(data: Any) -> Optional[str]:
        if not isinstance(data, dict):
            return "state is not a mapping"
        for key in REQUIRED_KEYS:
            if key not in data or data[key] is None:
                return f"missing '{key}'"
        version = data["version"]
        if isinstance(version, bool) or not isinstance(version, int):
            return "version is not an integer"
        if version != SCHEMA_VERSION:
            return f"unsupported schema version {version} (expected {SCHEMA_VERSION})"
        categories = data["categories"]
        if not isinstance(categories, list) or not all(isinstance(c, str) for c in categories):
            return "categories is not a list of strings"
        manifest = data["manifest"]
        if not isinstance(manifest, dict):
            return "manifest is not a mapping"
        for file_path, digest in manifest.items():
            if not isinstance(file_path, str) or not is_content_hash(digest):
                return f"invalid manifest entry for {file_path}"
        return None

    @staticmethod
    def _remove_quietly(path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not remove temporary state file %s: %s", path, exc)


__all__ = ["SyncState", "SyncStateRecord", "SCHEMA_VERSION", "STATE_FILENAME"]
