"""Error hierarchy for leyline synchronization."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union


class LeylineError(Exception):
    """Base error carrying the failing operation and some context."""

    category = "general"

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.context = dict(context or {})

    def recovery_suggestions(self) -> List[str]:
        return [
            "Run the command with --verbose for more detailed error information",
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_class": type(self).__name__,
            "message": self.message,
            "operation": self.operation,
            "context": {key: str(value) for key, value in self.context.items()},
            "category": self.category,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


class ValidationError(LeylineError):
    """Malformed metadata, category or hash rejected before any I/O."""

    category = "validation"


class CacheError(LeylineError):
    """The content cache is corrupted, unreadable or unwritable."""

    category = "cache"

    def __init__(
        self,
        message: str,
        *,
        cache_path: Optional[Union[str, Path]] = None,
        operation: Optional[str] = None,
    ) -> None:
        super().__init__(message, operation=operation, context={"cache_path": cache_path})
        self.cache_path = Path(cache_path) if cache_path else None

    def recovery_suggestions(self) -> List[str]:
        return [
            "Clear the cache directory: rm -rf ~/.cache/leyline",
            "Run sync with --no-cache to bypass the cache",
            "Check cache directory permissions and available disk space",
        ]


class SyncStateError(LeylineError):
    """Persisting or removing the sync state failed."""

    category = "sync_state"

    def __init__(
        self,
        message: str,
        *,
        state_file: Optional[Union[str, Path]] = None,
        operation: Optional[str] = None,
    ) -> None:
        super().__init__(message, operation=operation, context={"state_file": state_file})
        self.state_file = Path(state_file) if state_file else None

    def recovery_suggestions(self) -> List[str]:
        suggestions = [
            "Run 'leyline sync' to rebuild sync state from scratch",
            "Verify cache directory permissions are correct",
        ]
        if self.state_file:
            suggestions.append(f"Delete the state file: rm '{self.state_file}'")
        return suggestions


class ComparisonError(LeylineError):
    """A comparison could not run: missing file, root or category."""

    category = "comparison"


class SyncError(LeylineError):
    """Fatal precondition failure for a sync run; not retryable."""

    category = "sync"


class ConflictDetectedError(LeylineError):
    """Local edits and remote changes touch the same files."""

    category = "conflict"

    def __init__(self, conflicts: Sequence[Any], **kwargs: Any) -> None:
        self.conflicts = list(conflicts)
        super().__init__(self._build_message(), **kwargs)

    @property
    def conflicted_paths(self) -> List[str]:
        return [getattr(conflict, "path", str(conflict)) for conflict in self.conflicts]

    def _build_message(self) -> str:
        count = len(self.conflicts)
        paths = ", ".join(self.conflicted_paths[:3])
        message = f"{count} conflict{'s' if count != 1 else ''} detected"
        if paths:
            message += f" in: {paths}"
        if count > 3:
            message += f" and {count - 3} more"
        return message

    def recovery_suggestions(self) -> List[str]:
        return [
            "Use 'leyline diff' to see exact differences",
            "Use --force to override local changes with remote versions",
            "Manually merge conflicts in affected files",
        ]


__all__ = [
    "LeylineError",
    "ValidationError",
    "CacheError",
    "SyncStateError",
    "ComparisonError",
    "SyncError",
    "ConflictDetectedError",
]
