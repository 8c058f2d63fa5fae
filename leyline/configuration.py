"""Settings and project configuration loading for leyline."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
import sys
from typing import Any, Dict, List, Literal, Mapping, MutableMapping, Optional, Union

import yaml

logger = logging.getLogger("leyline.configuration")

CACHE_DIR_ENV = "LEYLINE_CACHE_DIR"
CACHE_THRESHOLD_ENV = "LEYLINE_CACHE_THRESHOLD"
CACHE_WARNINGS_ENV = "LEYLINE_CACHE_WARNINGS"
STRUCTURED_LOGGING_ENV = "LEYLINE_STRUCTURED_LOGGING"
DEBUG_ENV = "LEYLINE_DEBUG"

DEFAULT_CACHE_THRESHOLD = 0.8
DEFAULT_DOCS_PATH = "docs/leyline"
PROJECT_FILENAME = ".leyline"

DiagnosticLevel = Literal["info", "warning", "error"]
ProjectStatus = Literal["ready", "missing", "invalid"]

PathLike = Union[str, Path]


PROJECT_SCHEMA: Dict[str, Dict[str, Any]] = {
    "categories": {"type": list, "item_type": str, "default_factory": list},
    "version": {"type": str, "default": None},
    "docs_path": {"type": str, "default": DEFAULT_DOCS_PATH},
}


@dataclass
class Diagnostic:
    """Represents a configuration validation or loading issue."""

    level: DiagnosticLevel
    message: str
    source: Optional[Path] = None


def default_cache_dir(env: Optional[Mapping[str, str]] = None) -> Path:
    """Platform cache directory used when nothing overrides it."""

    env_source = os.environ if env is None else env
    if sys.platform.startswith("win"):
        base = env_source.get("LOCALAPPDATA") or "~/AppData/Local"
        return Path(base).expanduser() / "leyline"
    if sys.platform == "darwin":
        return Path("~/Library/Caches/leyline").expanduser()
    xdg = env_source.get("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg).expanduser() / "leyline"
    return Path("~/.cache/leyline").expanduser()


def resolve_cache_dir(
    explicit: Optional[PathLike] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Path:
    """Resolve the cache directory: explicit > environment > platform default."""

    if explicit:
        return Path(explicit).expanduser()
    env_source = os.environ if env is None else env
    raw = env_source.get(CACHE_DIR_ENV)
    if raw:
        return Path(raw).expanduser()
    return default_cache_dir(env_source)


def _parse_threshold(raw: Optional[str]) -> float:
    if raw is None or not raw.strip():
        return DEFAULT_CACHE_THRESHOLD
    try:
        value = float(raw)
    except ValueError:
        logger.warning(
            "Ignoring %s=%r; expected a number between 0 and 1.",
            CACHE_THRESHOLD_ENV,
            raw,
        )
        return DEFAULT_CACHE_THRESHOLD
    if not 0.0 <= value <= 1.0:
        logger.warning(
            "Ignoring %s=%s; value must be between 0 and 1.",
            CACHE_THRESHOLD_ENV,
            value,
        )
        return DEFAULT_CACHE_THRESHOLD
    return value


@dataclass
class LeylineSettings:
    """Runtime knobs read once from the environment and passed to components."""

    cache_dir: Path = field(default_factory=default_cache_dir)
    cache_threshold: float = DEFAULT_CACHE_THRESHOLD
    cache_warnings: bool = True
    structured_logging: bool = False
    debug: bool = False

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        cache_dir: Optional[PathLike] = None,
    ) -> "LeylineSettings":
        env_source = os.environ if env is None else env
        return cls(
            cache_dir=resolve_cache_dir(cache_dir, env_source),
            cache_threshold=_parse_threshold(env_source.get(CACHE_THRESHOLD_ENV)),
            cache_warnings=env_source.get(CACHE_WARNINGS_ENV, "").lower() != "false",
            structured_logging=env_source.get(STRUCTURED_LOGGING_ENV, "").lower() == "true",
            debug=env_source.get(DEBUG_ENV, "").lower() == "true",
        )

    @property
    def log_level(self) -> int:
        return logging.DEBUG if self.debug else logging.WARNING


@dataclass
class ProjectConfiguration:
    """Contents of a project's ``.leyline`` file plus loading diagnostics."""

    project_dir: Path
    status: ProjectStatus
    categories: List[str] = field(default_factory=list)
    version: Optional[str] = None
    docs_path: str = DEFAULT_DOCS_PATH
    source: Optional[Path] = None
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return self.status == "ready"

    @property
    def docs_dir(self) -> Path:
        return self.project_dir / self.docs_path

    def to_dict(self) -> Dict[str, Any]:
        return {
            "categories": list(self.categories),
            "version": self.version,
            "docs_path": self.docs_path,
        }


def load_project_file(project_dir: PathLike) -> ProjectConfiguration:
    """Load ``.leyline`` from a project directory.

    Problems never raise; they are reported as diagnostics and the affected keys
    fall back to their defaults.
    """

    project_path = Path(project_dir).expanduser()
    config_path = project_path / PROJECT_FILENAME
    diagnostics: List[Diagnostic] = []

    if not config_path.exists():
        diagnostics.append(
            Diagnostic(
                level="info",
                message=f"No {PROJECT_FILENAME} file found under '{project_path}'.",
                source=config_path,
            )
        )
        return ProjectConfiguration(
            project_dir=project_path,
            status="missing",
            diagnostics=diagnostics,
        )

    data: Dict[str, Any] = {}
    try:
        content = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        diagnostics.append(
            Diagnostic(
                level="error",
                message=f"Failed to parse '{config_path}': {exc}",
                source=config_path,
            )
        )
        content = None
    except OSError as exc:
        diagnostics.append(
            Diagnostic(
                level="error",
                message=f"Failed to read '{config_path}': {exc}",
                source=config_path,
            )
        )
        content = None

    if content is not None:
        if isinstance(content, MutableMapping):
            data = dict(content)
        else:
            diagnostics.append(
                Diagnostic(
                    level="error",
                    message=f"'{config_path}' must contain a mapping.",
                    source=config_path,
                )
            )

    _validate_project(data, diagnostics, config_path)

    status: ProjectStatus = "ready"
    if any(diag.level == "error" for diag in diagnostics):
        status = "invalid"

    return ProjectConfiguration(
        project_dir=project_path,
        status=status,
        categories=data["categories"],
        version=data["version"],
        docs_path=data["docs_path"],
        source=config_path,
        diagnostics=diagnostics,
    )


def _default_from_spec(spec: Dict[str, Any]) -> Any:
    if "default_factory" in spec:
        return spec["default_factory"]()
    return spec.get("default")


def _validate_project(
    target: Dict[str, Any],
    diagnostics: List[Diagnostic],
    source: Path,
) -> None:
    for key in list(target.keys()):
        if key not in PROJECT_SCHEMA:
            diagnostics.append(
                Diagnostic(
                    level="warning",
                    message=f"Unknown configuration key '{key}'.",
                    source=source,
                )
            )
            del target[key]

    for key, spec in PROJECT_SCHEMA.items():
        if target.get(key) is None:
            target[key] = _default_from_spec(spec)
            continue

        value = target[key]
        expected_type = spec["type"]

        if expected_type is list:
            if not isinstance(value, list):
                diagnostics.append(
                    Diagnostic(
                        level="error",
                        message=f"'{key}' must be a list.",
                        source=source,
                    )
                )
                target[key] = _default_from_spec(spec)
                continue
            filtered: List[str] = []
            for idx, item in enumerate(value):
                if isinstance(item, str) and item.strip():
                    if item.strip() not in filtered:
                        filtered.append(item.strip())
                else:
                    diagnostics.append(
                        Diagnostic(
                            level="error",
                            message=f"'{key}[{idx}]' must be a non-empty string.",
                            source=source,
                        )
                    )
            target[key] = filtered
        elif not isinstance(value, expected_type):
            # YAML reads bare versions like 2.0 as floats
            if key == "version" and isinstance(value, (int, float)):
                target[key] = str(value)
                continue
            diagnostics.append(
                Diagnostic(
                    level="error",
                    message=f"'{key}' must be of type {expected_type.__name__}.",
                    source=source,
                )
            )
            target[key] = _default_from_spec(spec)


__all__ = [
    "CACHE_DIR_ENV",
    "CACHE_THRESHOLD_ENV",
    "DEFAULT_CACHE_THRESHOLD",
    "DEFAULT_DOCS_PATH",
    "Diagnostic",
    "LeylineSettings",
    "ProjectConfiguration",
    "default_cache_dir",
    "load_project_file",
    "resolve_cache_dir",
]
