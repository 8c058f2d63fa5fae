"""Category index of the local standards documents."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import yaml

from ..cache.file_cache import FileCache, NullCache
from ..errors import CacheError
from ..hashing import hash_content
from ..sync.manifest import CATEGORY_PREFIX, CORE_CATEGORY, DOCUMENT_SUFFIX, iter_tree_files

logger = logging.getLogger("leyline.discovery.index")

FRONT_MATTER_LIMIT = 8 * 1024
FRONT_MATTER_DELIMITER = "---"
TENETS_CATEGORY = "tenets"


@dataclass
class DocumentEntry:
    """One indexed document."""

    path: str
    category: str
    title: str
    content_hash: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "category": self.category,
            "title": self.title,
            "content_hash": self.content_hash,
            "metadata": dict(self.metadata),
        }


@dataclass
class IndexStats:
    """Statistics from one scan."""

    documents: int = 0
    errors: int = 0
    skipped: int = 0
    cancelled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "documents": self.documents,
            "errors": self.errors,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
        }


def category_for(rel_path: str) -> Optional[str]:
    """Category a document belongs to, or None when it is outside the corpus layout."""
    if not rel_path.endswith(DOCUMENT_SUFFIX):
        return None
    if rel_path.startswith("tenets/"):
        return TENETS_CATEGORY
    if rel_path.startswith("bindings/core/"):
        return CORE_CATEGORY
    if rel_path.startswith(CATEGORY_PREFIX):
        name = rel_path[len(CATEGORY_PREFIX):].split("/", 1)[0]
        if name and "/" in rel_path[len(CATEGORY_PREFIX):]:
            return name
    return None


def parse_front_matter(text: str) -> Dict[str, Any]:
    """YAML front-matter at the top of ``text``; empty when absent or malformed."""
    lines = text.splitlines()
    if not lines or lines[0].strip() != FRONT_MATTER_DELIMITER:
        return {}
    for idx, line in enumerate(lines[1:], start=1):
        if line.strip() == FRONT_MATTER_DELIMITER:
            block = "\n".join(lines[1:idx])
            break
    else:
        return {}

    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        logger.debug("Malformed front-matter: %s", exc)
        return {}
    return data if isinstance(data, dict) else {}


def _title_from(text: str, metadata: Dict[str, Any], fallback: str) -> str:
    for key in ("title", "id"):
        value = metadata.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    for line in text.splitlines():
        if line.startswith("# "):
            return line[2:].strip()
    return fallback


class DocumentIndex:
    """Maps categories to the documents found under ``docs_root``.

    The index is built lazily on first query and rebuilt by :meth:`refresh`.
    Scanned content is stored in the content cache so a later sync finds it.
    It never reads or writes sync state.
    """

    def __init__(self, docs_root: Union[str, Path], cache: Optional[FileCache] = None) -> None:
        self.docs_root = Path(docs_root)
        self.cache = cache if cache is not None else NullCache()
        self._lock = threading.Lock()
        self._documents: Dict[str, List[DocumentEntry]] = {}
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    def categories(self) -> List[str]:
        self._ensure_loaded()
        with self._lock:
            return sorted(self._documents)

    def documents_for_category(self, name: str) -> List[DocumentEntry]:
        self._ensure_loaded()
        with self._lock:
            return list(self._documents.get(name, []))

    def invalidate(self) -> None:
        """Drop the index; the next query rescans."""
        with self._lock:
            self._documents = {}
            self._loaded = False

    def refresh(self, should_cancel: Optional[Callable[[], bool]] = None) -> IndexStats:
        """Rescan ``docs_root``.

        ``should_cancel`` is checked between files. A cancelled scan leaves
        the previous index in place.
        """
        stats = IndexStats()
        documents: Dict[str, List[DocumentEntry]] = {}

        if not self.docs_root.is_dir():
            logger.warning("Documents directory does not exist: %s", self.docs_root)
        else:
            for rel_path, file_path in iter_tree_files(self.docs_root):
                if should_cancel is not None and should_cancel():
                    stats.cancelled = True
                    logger.info("Index scan of %s cancelled", self.docs_root)
                    return stats

                category = category_for(rel_path)
                if category is None:
                    stats.skipped += 1
                    continue

                entry = self._index_file(rel_path, file_path, category)
                if entry is None:
                    stats.errors += 1
                    continue
                documents.setdefault(category, []).append(entry)
                stats.documents += 1

        with self._lock:
            self._documents = documents
            self._loaded = True

        logger.debug(
            "Indexed %d document(s) in %d categories under %s",
            stats.documents,
            len(documents),
            self.docs_root,
        )
        return stats

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.refresh()

    def _index_file(self, rel_path: str, file_path: Path, category: str) -> Optional[DocumentEntry]:
        try:
            content = file_path.read_bytes()
        except OSError as exc:
            logger.warning("Skipping unreadable document %s: %s", file_path, exc)
            return None

        head = content[:FRONT_MATTER_LIMIT].decode("utf-8", errors="replace")
        metadata = parse_front_matter(head)

        try:
            self.cache.put(content)
        except CacheError:
            pass

        return DocumentEntry(
            path=rel_path,
            category=category,
            title=_title_from(head, metadata, file_path.stem),
            content_hash=hash_content(content),
            metadata=metadata,
        )


__all__ = [
    "DocumentEntry",
    "DocumentIndex",
    "IndexStats",
    "category_for",
    "parse_front_matter",
]
