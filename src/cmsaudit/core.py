"""Shared constants, project discovery and config handling for cmsaudit.

Convention-based discovery: a project that has been set up with
``cmsaudit setup`` carries a `.cmsaudit/` directory holding `config.json`
(plugin choice, defaults) and an optional `rules/` directory of custom rules.
Projects without one are still analyzable; config defaults apply.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path
from typing import Any, Literal, TypedDict

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constrained-string Literal types
# ---------------------------------------------------------------------------

Severity = Literal["critical", "warning", "info"]

SEVERITIES: tuple[Severity, ...] = ("critical", "warning", "info")
_SEVERITY_RANK: dict[str, int] = {"critical": 0, "warning": 1, "info": 2}


class ProjectConfig(TypedDict, total=False):
    """Shape of .cmsaudit/config.json."""

    version: int
    plugin: str
    min_severity: str
    output_dir: str
    exclude: list[str]
    disabled_rules: list[str]
    tracking_url: str


# ---------------------------------------------------------------------------
# Convention-based discovery
# ---------------------------------------------------------------------------

CMSAUDIT_DIR_NAME = ".cmsaudit"
CONFIG_FILENAME = "config.json"
RULES_DIRNAME = "rules"
LOG_FILENAME = "cmsaudit.log"
IGNORE_FILENAME = ".claudeignore"
DEFAULT_OUTPUT_DIR = "docs"


def find_cmsaudit_root(start: Path | None = None) -> Path:
    """Walk up from start (default cwd) looking for .cmsaudit/ directory.

    Returns the .cmsaudit/ directory path (not the project root).
    """
    current = (start or Path.cwd()).resolve()
    for parent in [current, *current.parents]:
        candidate = parent / CMSAUDIT_DIR_NAME
        if candidate.is_dir():
            return candidate
    msg = f"No {CMSAUDIT_DIR_NAME}/ directory found in {current} or any parent"
    raise FileNotFoundError(msg)


def resolve_project_root(start: Path | None = None) -> Path:
    """Return the directory that owns .cmsaudit/, or *start* itself when there is none."""
    start = (start or Path.cwd()).resolve()
    try:
        return find_cmsaudit_root(start).parent
    except FileNotFoundError:
        return start


def default_config() -> ProjectConfig:
    return ProjectConfig(
        version=1,
        min_severity="info",
        output_dir=DEFAULT_OUTPUT_DIR,
        exclude=[],
        disabled_rules=[],
    )


def read_config(cmsaudit_dir: Path) -> ProjectConfig:
    """Read .cmsaudit/config.json. Returns defaults if missing or corrupt."""
    defaults = default_config()
    config_path = cmsaudit_dir / CONFIG_FILENAME
    if not config_path.exists():
        return defaults
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read %s, using defaults: %s", config_path, exc)
        return defaults
    if not isinstance(data, dict):
        logger.warning("%s does not contain a JSON object, using defaults", config_path)
        return defaults
    merged: dict[str, Any] = dict(defaults)
    merged.update(data)
    for list_key in ("exclude", "disabled_rules"):
        value = merged.get(list_key)
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            logger.warning("Config key %r must be a list of strings, ignoring", list_key)
            merged[list_key] = []
    result: ProjectConfig = merged  # type: ignore[assignment]
    return result


def write_config(cmsaudit_dir: Path, config: dict[str, Any] | ProjectConfig) -> None:
    """Write .cmsaudit/config.json."""
    config_path = cmsaudit_dir / CONFIG_FILENAME
    config_path.write_text(json.dumps(config, indent=2) + "\n", encoding="utf-8")


def load_project_config(project_root: Path) -> ProjectConfig:
    """Config for *project_root*, or defaults when it has no .cmsaudit/ directory."""
    cmsaudit_dir = project_root / CMSAUDIT_DIR_NAME
    if not cmsaudit_dir.is_dir():
        return default_config()
    return read_config(cmsaudit_dir)


# ---------------------------------------------------------------------------
# Severity helpers
# ---------------------------------------------------------------------------


def parse_severity(value: str) -> Severity:
    """Normalize a severity label. Accepts the capitalized table spelling (``Critical``)."""
    if not isinstance(value, str):
        msg = f"Severity must be a string, got {type(value).__name__}"
        raise ValueError(msg)
    normalized = value.strip().lower()
    if normalized not in _SEVERITY_RANK:
        msg = f"Invalid severity '{value}': must be one of {list(SEVERITIES)}"
        raise ValueError(msg)
    result: Severity = normalized  # type: ignore[assignment]
    return result


def severity_rank(severity: str) -> int:
    """Lower rank is more severe."""
    return _SEVERITY_RANK[severity]


def at_least(severity: str, threshold: str) -> bool:
    """True when *severity* is as severe as *threshold* or more."""
    return _SEVERITY_RANK[severity] <= _SEVERITY_RANK[threshold]


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------


def write_atomic(path: Path, content: str) -> None:
    """Write content to path atomically via temp file + os.replace()."""
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_text(content, encoding="utf-8")
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise
