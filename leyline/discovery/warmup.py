"""Background warm-up of the document index and content cache."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .index import DocumentIndex

logger = logging.getLogger("leyline.discovery.warmup")

IDLE = "idle"
RUNNING = "running"
COMPLETED = "completed"
CANCELLED = "cancelled"
FAILED = "failed"


@dataclass
class WarmupStatus:
    """Snapshot of the latest warm-up."""

    state: str = IDLE
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    documents: int = 0
    error: Optional[str] = None

    @property
    def running(self) -> bool:
        return self.state == RUNNING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "documents": self.documents,
            "error": self.error,
        }


class CacheWarmer:
    """Runs :meth:`DocumentIndex.refresh` on a daemon thread.

    At most one warm-up runs at a time. Failures end up in :meth:`status`;
    they are never raised into the caller.
    """

    def __init__(self, index: DocumentIndex) -> None:
        self.index = index
        self._lock = threading.Lock()
        self._running = threading.Event()
        self._cancel = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._status = WarmupStatus()

    def start(self) -> bool:
        """Begin a warm-up; False when one is already in progress."""
        with self._lock:
            if self._running.is_set():
                return False
            self._running.set()
            self._cancel.clear()
            self._status = WarmupStatus(state=RUNNING, started_at=_now())
            self._thread = threading.Thread(
                target=self._run,
                name="leyline-warmup",
                daemon=True,
            )
            self._thread.start()
        logger.info("Cache warm-up started for %s", self.index.docs_root)
        return True

    def cancel(self) -> None:
        self._cancel.set()

    def status(self) -> WarmupStatus:
        with self._lock:
            return replace(self._status)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the current warm-up ends; True when nothing is running."""
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        return not self._running.is_set()

    def _run(self) -> None:
        try:
            stats = self.index.refresh(should_cancel=self._cancel.is_set)
        except Exception as exc:  # captured for status()
            logger.error("Cache warm-up failed: %s", exc, exc_info=True)
            self._finish(state=FAILED, error=str(exc) or type(exc).__name__)
        else:
            state = CANCELLED if stats.cancelled else COMPLETED
            self._finish(state=state, documents=stats.documents)
            logger.info("Cache warm-up %s (%d documents)", state, stats.documents)

    def _finish(self, *, state: str, documents: int = 0, error: Optional[str] = None) -> None:
        with self._lock:
            self._status = replace(
                self._status,
                state=state,
                finished_at=_now(),
                documents=documents,
                error=error,
            )
            self._running.clear()


def _now() -> datetime:
    return datetime.now(timezone.utc)


__all__ = ["CacheWarmer", "WarmupStatus"]
