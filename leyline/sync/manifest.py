"""Manifests, category scopes and manifest comparison."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Set, Tuple, Union


Manifest = Dict[str, str]

DOCUMENT_SUFFIX = ".md"
CORE_CATEGORY = "core"
BASE_PREFIXES: Tuple[str, ...] = ("tenets/", "bindings/core/")
CATEGORY_PREFIX = "bindings/categories/"


def normalize_path(path: Union[str, Path]) -> str:
    """Relative manifest key: forward slashes, no leading ``./``."""
    text = str(path).replace("\\", "/")
    while text.startswith("./"):
        text = text[2:]
    return str(PurePosixPath(text)) if text else text


@dataclass(frozen=True)
class CategoryScope:
    """Which documents participate for a set of categories.

    Tenets and core bindings are always included; every other category adds
    its own ``bindings/categories/<name>/`` subtree.
    """

    categories: Tuple[str, ...] = (CORE_CATEGORY,)

    @classmethod
    def of(cls, categories: Union[str, Iterable[str], None]) -> "CategoryScope":
        if categories is None:
            return cls()
        if isinstance(categories, str):
            categories = [categories]
        cleaned: List[str] = []
        for name in categories:
            name = name.strip()
            if name and name not in cleaned:
                cleaned.append(name)
        return cls(tuple(cleaned) or (CORE_CATEGORY,))

    @property
    def prefixes(self) -> List[str]:
        prefixes = list(BASE_PREFIXES)
        for name in self.categories:
            if name != CORE_CATEGORY:
                prefixes.append(f"{CATEGORY_PREFIX}{name}/")
        return prefixes

    def includes(self, rel_path: str) -> bool:
        rel_path = normalize_path(rel_path)
        if not rel_path.endswith(DOCUMENT_SUFFIX):
            return False
        return any(rel_path.startswith(prefix) for prefix in self.prefixes)

    def iter_files(self, root: Path) -> Iterator[Tuple[str, Path]]:
        """Yield ``(relative key, absolute path)`` for scoped files under root."""
        seen: Set[str] = set()
        for prefix in self.prefixes:
            base = root / prefix
            if not base.is_dir():
                continue
            for file_path in sorted(base.rglob(f"*{DOCUMENT_SUFFIX}")):
                if not file_path.is_file():
                    continue
                rel_path = normalize_path(file_path.relative_to(root).as_posix())
                if rel_path in seen:
                    continue
                seen.add(rel_path)
                yield rel_path, file_path

    def filter(self, manifest: Mapping[str, str]) -> Manifest:
        return {path: digest for path, digest in manifest.items() if self.includes(path)}


def iter_tree_files(root: Path) -> Iterator[Tuple[str, Path]]:
    """Yield every regular file under root with its relative key."""
    for file_path in sorted(root.rglob("*")):
        if file_path.is_file():
            yield normalize_path(file_path.relative_to(root).as_posix()), file_path


@dataclass
class ComparisonResult:
    """Partition of ``paths(base) | paths(current)`` into four disjoint sets."""

    added: Set[str] = field(default_factory=set)
    modified: Set[str] = field(default_factory=set)
    removed: Set[str] = field(default_factory=set)
    unchanged: Set[str] = field(default_factory=set)
    base_timestamp: Optional[str] = None
    base_version: Optional[str] = None
    base_categories: List[str] = field(default_factory=list)

    @property
    def total_changes(self) -> int:
        return len(self.added) + len(self.modified) + len(self.removed)

    @property
    def has_changes(self) -> bool:
        return self.total_changes > 0

    @property
    def all_paths(self) -> Set[str]:
        return self.added | self.modified | self.removed | self.unchanged

    def summary(self) -> str:
        parts = []
        if self.added:
            parts.append(f"{len(self.added)} added")
        if self.modified:
            parts.append(f"{len(self.modified)} modified")
        if self.removed:
            parts.append(f"{len(self.removed)} removed")
        return ", ".join(parts) if parts else "no changes"

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "added": sorted(self.added),
            "modified": sorted(self.modified),
            "removed": sorted(self.removed),
            "unchanged": sorted(self.unchanged),
        }
        if self.base_timestamp is not None:
            result["base_timestamp"] = self.base_timestamp
            result["base_version"] = self.base_version
            result["base_categories"] = list(self.base_categories)
        return result


def compare_manifests(base: Mapping[str, str], current: Mapping[str, str]) -> ComparisonResult:
    """Classify every path of either manifest.

    Only in base -> removed, only in current -> added, in both with a different
    hash -> modified, otherwise unchanged.
    """
    base_paths = set(base.keys())
    current_paths = set(current.keys())
    shared = base_paths & current_paths

    modified = {path for path in shared if base[path] != current[path]}
    return ComparisonResult(
        added=current_paths - base_paths,
        removed=base_paths - current_paths,
        modified=modified,
        unchanged=shared - modified,
    )


__all__ = [
    "Manifest",
    "CategoryScope",
    "ComparisonResult",
    "compare_manifests",
    "iter_tree_files",
    "normalize_path",
    "CORE_CATEGORY",
]
