"""Tests for the document index and background warm-up."""

from __future__ import annotations

import threading
import time
from pathlib import Path

from leyline.cache import FileCache
from leyline.discovery import CacheWarmer, DocumentIndex
from leyline.discovery.index import category_for, parse_front_matter
from leyline.hashing import hash_content
from leyline.sync.state import SyncState


def _write(root: Path, rel_path: str, content: str) -> None:
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _corpus(root: Path) -> Path:
    _write(root, "tenets/simplicity.md", "---\nid: simplicity\ntitle: Simplicity\n---\n# Simplicity\n")
    _write(root, "bindings/core/naming.md", "# Naming conventions\n\nBody.\n")
    _write(root, "bindings/categories/go/errors.md", "---\nid: go-errors\n---\nText\n")
    _write(root, "bindings/categories/go/notes.txt", "not a document")
    _write(root, "README.md", "# Outside the layout\n")
    return root


def test_category_for_paths():
    assert category_for("tenets/a.md") == "tenets"
    assert category_for("bindings/core/a.md") == "core"
    assert category_for("bindings/categories/go/a.md") == "go"
    assert category_for("bindings/categories/go.md") is None
    assert category_for("README.md") is None


def test_parse_front_matter():
    assert parse_front_matter("---\nid: x\nversion: 2\n---\nbody") == {"id": "x", "version": 2}
    assert parse_front_matter("# No front-matter") == {}
    assert parse_front_matter("---\nid: unterminated\n") == {}
    assert parse_front_matter("---\n: [bad\n---\n") == {}


def test_index_groups_documents_by_category(tmp_path: Path):
    index = DocumentIndex(_corpus(tmp_path / "docs"))

    assert index.categories() == ["core", "go", "tenets"]
    tenets = index.documents_for_category("tenets")
    assert [doc.title for doc in tenets] == ["Simplicity"]
    assert tenets[0].metadata["id"] == "simplicity"
    assert index.documents_for_category("core")[0].title == "Naming conventions"
    assert index.documents_for_category("go")[0].title == "go-errors"
    assert index.documents_for_category("rust") == []


def test_front_matter_beyond_limit_is_ignored(tmp_path: Path):
    docs = tmp_path / "docs"
    _write(docs, "tenets/huge.md", "---\ntitle: Huge\n" + "x: y\n" * 3000 + "---\n")

    doc = DocumentIndex(docs).documents_for_category("tenets")[0]

    assert doc.metadata == {}
    assert doc.title == "huge"


def test_refresh_fills_cache_without_touching_state(tmp_path: Path):
    docs = _corpus(tmp_path / "docs")
    cache = FileCache(tmp_path / "cache")
    state = SyncState(tmp_path / "cache")

    stats = DocumentIndex(docs, cache=cache).refresh()

    assert stats.documents == 3
    assert stats.skipped == 2
    assert cache.contains(hash_content((docs / "bindings" / "core" / "naming.md").read_bytes()))
    assert not state.state_exists()


def test_invalidate_rescans(tmp_path: Path):
    docs = _corpus(tmp_path / "docs")
    index = DocumentIndex(docs)
    assert index.categories() == ["core", "go", "tenets"]

    _write(docs, "bindings/categories/rust/ownership.md", "# Ownership\n")
    assert "rust" not in index.categories()

    index.invalidate()
    assert "rust" in index.categories()


def test_cancelled_refresh_keeps_previous_index(tmp_path: Path):
    index = DocumentIndex(_corpus(tmp_path / "docs"))
    index.refresh()

    stats = index.refresh(should_cancel=lambda: True)

    assert stats.cancelled
    assert index.categories() == ["core", "go", "tenets"]


def test_warmer_runs_once_at_a_time(tmp_path: Path):
    index = DocumentIndex(_corpus(tmp_path / "docs"))
    release = threading.Event()
    original_refresh = index.refresh

    def slow_refresh(should_cancel=None):
        release.wait(5)
        return original_refresh(should_cancel=should_cancel)

    index.refresh = slow_refresh
    warmer = CacheWarmer(index)

    assert warmer.start() is True
    assert warmer.start() is False
    assert warmer.status().state == "running"

    release.set()
    assert warmer.wait(5)
    status = warmer.status()
    assert status.state == "completed"
    assert status.documents == 3
    assert status.finished_at >= status.started_at

    assert warmer.start() is True
    assert warmer.wait(5)


def test_warmer_captures_failures(tmp_path: Path):
    index = DocumentIndex(tmp_path / "docs")

    def broken_refresh(should_cancel=None):
        raise RuntimeError("index exploded")

    index.refresh = broken_refresh
    warmer = CacheWarmer(index)

    assert warmer.start()
    assert warmer.wait(5)
    status = warmer.status()
    assert status.state == "failed"
    assert status.error == "index exploded"
    assert status.to_dict()["error"] == "index exploded"


def test_warmer_cancel(tmp_path: Path):
    index = DocumentIndex(_corpus(tmp_path / "docs"))
    started = threading.Event()
    original_refresh = index.refresh

    def waiting_refresh(should_cancel=None):
        started.set()
        for _ in range(500):
            if should_cancel():
                break
            time.sleep(0.01)
        return original_refresh(should_cancel=should_cancel)

    index.refresh = waiting_refresh
    warmer = CacheWarmer(index)
    warmer.start()
    started.wait(5)
    warmer.cancel()

    assert warmer.wait(10)
    assert warmer.status().state == "cancelled"
