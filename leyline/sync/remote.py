"""Remote content sources.

The sync engine never fetches bytes itself. A transport materializes the
upstream documents somewhere (a sparse checkout, an unpacked archive) and hands
the engine a :class:`RemoteSource` that can list a manifest for a category set
and return the bytes of a single path.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Protocol, Union

from ..errors import ComparisonError
from ..hashing import compute_file_hash
from .manifest import CategoryScope, Manifest, normalize_path

logger = logging.getLogger("leyline.sync.remote")


class RemoteSource(Protocol):
    """What the engine needs from the remote-fetch collaborator."""

    @property
    def version(self) -> Optional[str]:
        ...

    def manifest(self, categories: Iterable[str]) -> Manifest:
        ...

    def fetch(self, rel_path: str) -> bytes:
        ...


class EmptyRemote:
    """A remote with nothing in it; the default when no transport is wired."""

    version: Optional[str] = None

    def manifest(self, categories: Iterable[str]) -> Manifest:
        return {}

    def fetch(self, rel_path: str) -> bytes:
        raise ComparisonError(f"Remote file not available: {rel_path}", operation="fetch")


class DirectoryRemote:
    """Remote content already materialized on disk.

    ``root`` is the directory that holds ``tenets/`` and ``bindings/``.
    """

    def __init__(self, root: Union[str, Path], version: Optional[str] = None) -> None:
        self.root = Path(root).expanduser()
        self.version = version
        self._hashes: Dict[str, str] = {}

    def manifest(self, categories: Iterable[str]) -> Manifest:
        scope = CategoryScope.of(list(categories))
        manifest: Manifest = {}
        for rel_path, file_path in scope.iter_files(self.root):
            try:
                manifest[rel_path] = self._hash(rel_path, file_path)
            except OSError as exc:
                logger.warning("Skipping unreadable remote file %s: %s", rel_path, exc)
        return manifest

    def fetch(self, rel_path: str) -> bytes:
        file_path = self.root / normalize_path(rel_path)
        try:
            return file_path.read_bytes()
        except OSError as exc:
            raise ComparisonError(
                f"Remote file not available: {rel_path}",
                operation="fetch",
                context={"path": file_path},
            ) from exc

    def _hash(self, rel_path: str, file_path: Path) -> str:
        if rel_path not in self._hashes:
            self._hashes[rel_path] = compute_file_hash(file_path)
        return self._hashes[rel_path]


__all__ = ["RemoteSource", "EmptyRemote", "DirectoryRemote"]
