"""Tests for update planning and conflict detection."""

from __future__ import annotations

from pathlib import Path

import pytest

from leyline.errors import ConflictDetectedError
from leyline.sync.comparator import FileComparator
from leyline.sync.remote import DirectoryRemote
from leyline.sync.state import SyncState
from leyline.sync.update import ConflictType, UpdatePlanner


def _write(root: Path, rel_path: str, content: str) -> Path:
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def _baseline(tmp_path: Path, files):
    """Project and upstream holding the same files, recorded as the last sync."""
    project = tmp_path / "project"
    docs = project / "docs" / "leyline"
    upstream = tmp_path / "upstream"
    for rel_path, content in files.items():
        _write(docs, rel_path, content)
        _write(upstream, rel_path, content)

    state = SyncState(tmp_path / "cache")
    manifest = FileComparator().tree_manifest(docs)
    state.save_sync_state({"categories": ["core"], "manifest": manifest})
    return project, docs, upstream, state


def _planner(project: Path, upstream: Path, state: SyncState) -> UpdatePlanner:
    return UpdatePlanner(project, DirectoryRemote(upstream, version="2.0.0"), state, categories=["core"])


def test_plan_without_changes_is_up_to_date(tmp_path: Path):
    project, _, upstream, state = _baseline(tmp_path, {"tenets/a.md": "a"})

    plan = _planner(project, upstream, state).plan()

    assert plan.baseline_exists
    assert plan.status == "Up to date"
    assert plan.total_changes == 0


def test_plan_lists_upstream_changes(tmp_path: Path):
    project, docs, upstream, state = _baseline(
        tmp_path,
        {"tenets/a.md": "a", "bindings/core/b.md": "b", "bindings/core/c.md": "c"},
    )
    _write(upstream, "tenets/a.md", "a v2")
    _write(upstream, "tenets/new.md", "new")
    (upstream / "bindings" / "core" / "c.md").unlink()

    plan = _planner(project, upstream, state).plan()

    assert plan.added == ["tenets/new.md"]
    assert plan.modified == ["tenets/a.md"]
    assert plan.removed == ["bindings/core/c.md"]
    assert plan.conflicts == []
    assert plan.to_dict()["summary"]["status"] == "Updates available"


def test_both_modified_is_a_conflict(tmp_path: Path):
    project, docs, upstream, state = _baseline(tmp_path, {"tenets/a.md": "a"})
    _write(docs, "tenets/a.md", "local edit")
    _write(upstream, "tenets/a.md", "upstream edit")

    plan = _planner(project, upstream, state).plan()

    assert [(c.path, c.type) for c in plan.conflicts] == [("tenets/a.md", ConflictType.BOTH_MODIFIED)]
    assert plan.modified == []
    assert plan.status == "Updates available with conflicts"


def test_local_addition_modified_upstream_is_a_conflict(tmp_path: Path):
    project, docs, upstream, state = _baseline(tmp_path, {"tenets/a.md": "a"})
    _write(docs, "tenets/b.md", "mine")
    _write(upstream, "tenets/b.md", "theirs")

    plan = _planner(project, upstream, state).plan()

    assert [c.type for c in plan.conflicts] == [ConflictType.LOCAL_ADDED_REMOTE_MODIFIED]


def test_local_only_edit_is_kept(tmp_path: Path):
    project, docs, upstream, state = _baseline(tmp_path, {"tenets/a.md": "a"})
    _write(docs, "tenets/a.md", "local edit")

    planner = _planner(project, upstream, state)
    plan = planner.plan()
    result = planner.apply(plan)

    assert plan.kept_local == ["tenets/a.md"]
    assert plan.conflicts == []
    assert result.skipped == ["tenets/a.md"]
    assert (docs / "tenets" / "a.md").read_text() == "local edit"


def test_no_baseline_means_no_conflicts(tmp_path: Path):
    project = tmp_path / "project"
    docs = project / "docs" / "leyline"
    upstream = tmp_path / "upstream"
    _write(docs, "tenets/a.md", "local")
    _write(upstream, "tenets/a.md", "upstream")

    plan = _planner(project, upstream, SyncState(tmp_path / "cache")).plan()

    assert not plan.baseline_exists
    assert plan.modified == ["tenets/a.md"]
    assert plan.conflicts == []


def test_apply_refuses_conflicts_without_force(tmp_path: Path):
    project, docs, upstream, state = _baseline(tmp_path, {"tenets/a.md": "a"})
    _write(docs, "tenets/a.md", "local edit")
    _write(upstream, "tenets/a.md", "upstream edit")
    planner = _planner(project, upstream, state)
    plan = planner.plan()

    with pytest.raises(ConflictDetectedError) as excinfo:
        planner.apply(plan)

    assert excinfo.value.conflicted_paths == ["tenets/a.md"]
    assert "1 conflict detected" in str(excinfo.value)
    assert (docs / "tenets" / "a.md").read_text() == "local edit"

    result = planner.apply(plan, force=True)
    assert result.copied == ["tenets/a.md"]
    assert (docs / "tenets" / "a.md").read_text() == "upstream edit"


def test_apply_writes_changes_and_records_state(tmp_path: Path):
    project, docs, upstream, state = _baseline(tmp_path, {"tenets/a.md": "a", "bindings/core/c.md": "c"})
    _write(upstream, "tenets/a.md", "a v2")
    _write(upstream, "bindings/core/new.md", "new")
    (upstream / "bindings" / "core" / "c.md").unlink()
    planner = _planner(project, upstream, state)

    result = planner.apply(planner.plan())

    assert sorted(result.copied) == ["bindings/core/new.md", "tenets/a.md"]
    assert (docs / "bindings" / "core" / "c.md").exists()
    record = state.load_sync_state()
    assert record.source_version == "2.0.0"
    assert sorted(record.manifest) == ["bindings/core/new.md", "tenets/a.md"]
    assert planner.plan().modified == []
