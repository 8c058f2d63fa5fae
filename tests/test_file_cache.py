"""Tests for the content-addressable file cache."""

from __future__ import annotations

from pathlib import Path

import pytest

from leyline.cache import FileCache, NullCache, is_active
from leyline.cache import error_handler
from leyline.configuration import LeylineSettings
from leyline.errors import CacheError
from leyline.hashing import hash_content
from leyline.sync.comparator import FileComparator


def _entries(cache: FileCache):
    return [path for path in cache.content_dir.rglob("*") if path.is_file()]


def test_put_returns_hash_and_stores_single_entry(tmp_path: Path):
    cache = FileCache(tmp_path / "cache")

    first = cache.put(b"# Tenet\n")
    second = cache.put(b"# Tenet\n")

    assert first == second == hash_content(b"# Tenet\n")
    assert len(_entries(cache)) == 1
    assert cache.puts == 1
    assert cache.entry_path(first) == cache.content_dir / first[:2] / first[2:]


def test_get_returns_stored_content(tmp_path: Path):
    cache = FileCache(tmp_path / "cache")
    digest = cache.put("text content")

    assert cache.get(digest) == b"text content"
    assert cache.hits == 1
    assert cache.contains(digest)


def test_get_missing_or_invalid_hash_is_a_miss(tmp_path: Path):
    cache = FileCache(tmp_path / "cache")

    assert cache.get("0" * 64) is None
    assert cache.get("not-a-hash") is None
    assert cache.misses == 2
    assert cache.hit_ratio == 0.0


def test_corrupted_entry_raises_and_is_removed(tmp_path: Path):
    cache = FileCache(tmp_path / "cache")
    digest = cache.put(b"original")
    cache.entry_path(digest).write_bytes(b"tampered")

    with pytest.raises(CacheError) as excinfo:
        cache.get(digest)

    assert "Corrupted" in str(excinfo.value)
    assert not cache.entry_path(digest).exists()
    assert cache.get(digest) is None


def test_hit_ratio_counts_hits_and_misses(tmp_path: Path):
    cache = FileCache(tmp_path / "cache")
    digest = cache.put(b"a")
    cache.get(digest)
    cache.get(digest)
    cache.get(hash_content(b"b"))

    assert cache.hit_ratio == pytest.approx(2 / 3)


def test_put_failure_raises_cache_error_without_temp_files(tmp_path: Path, monkeypatch):
    cache = FileCache(tmp_path / "cache")

    def fail_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("leyline.cache.file_cache.os.replace", fail_replace)

    with pytest.raises(CacheError):
        cache.put(b"payload")

    assert _entries(cache) == []
    assert cache.puts == 0


def test_settings_supply_cache_dir(tmp_path: Path):
    settings = LeylineSettings(cache_dir=tmp_path / "from-settings")
    cache = FileCache(settings=settings)

    assert cache.cache_dir == tmp_path / "from-settings"


def test_clear_removes_entries(tmp_path: Path):
    cache = FileCache(tmp_path / "cache")
    digest = cache.put(b"x")
    cache.clear()

    assert not cache.contains(digest)
    cache.clear()


def test_directory_stats_and_health(tmp_path: Path):
    cache = FileCache(tmp_path / "cache")
    cache.put(b"12345")
    cache.put(b"678")

    stats = cache.directory_stats()
    assert stats["file_count"] == 2
    assert stats["size"] == 8
    assert stats["path"] == str(tmp_path / "cache")

    assert cache.health_status() == {"healthy": True, "issues": []}


def test_health_reports_missing_directory(tmp_path: Path):
    cache = FileCache(tmp_path / "missing")
    health = cache.health_status()

    assert health["healthy"] is False
    assert health["issues"][0]["type"] == "missing_directory"


def test_null_cache_stores_nothing(tmp_path: Path):
    cache = NullCache()
    digest = cache.put(b"content")

    assert digest == hash_content(b"content")
    assert cache.get(digest) is None
    assert cache.directory_stats() == {}
    assert not is_active(cache)
    assert not is_active(None)
    assert is_active(FileCache(tmp_path))


def test_warnings_can_be_silenced(caplog, monkeypatch):
    monkeypatch.setattr(error_handler, "_enabled", True)
    with caplog.at_level("WARNING", logger="leyline.cache"):
        error_handler.warn("first", cache_path="/tmp/x")
        error_handler.configure(False)
        error_handler.warn("second")
        error_handler.handle_error(OSError("boom"), "cache_put")

    messages = [record.getMessage() for record in caplog.records]
    assert messages == ["[Cache] first"]
    assert caplog.records[0].extra == {"cache_path": "/tmp/x"}


def test_unreadable_entry_raises_cache_error(tmp_path: Path, monkeypatch):
    cache = FileCache(tmp_path / "cache")
    original_is_file = Path.is_file

    def denied(self, *args, **kwargs):
        if cache.content_dir in self.parents:
            raise PermissionError(13, "Permission denied", str(self))
        return original_is_file(self, *args, **kwargs)

    monkeypatch.setattr(Path, "is_file", denied)

    with pytest.raises(CacheError):
        cache.put(b"payload")
    with pytest.raises(CacheError):
        cache.contains(hash_content(b"payload"))


def test_unreadable_shard_does_not_abort_manifest(tmp_path: Path, monkeypatch):
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "a.md").write_text("alpha", encoding="utf-8")
    (docs / "b.md").write_text("beta", encoding="utf-8")
    cache = FileCache(tmp_path / "cache")
    original_stat = Path.stat

    def guarded_stat(self, *args, **kwargs):
        if self.parent.parent == cache.content_dir:
            raise PermissionError(13, "Permission denied", str(self))
        return original_stat(self, *args, **kwargs)

    monkeypatch.setattr(Path, "stat", guarded_stat)

    manifest = FileComparator(cache=cache).create_manifest(["a.md", "b.md"], root=docs)

    assert manifest == {"a.md": hash_content("alpha"), "b.md": hash_content("beta")}
