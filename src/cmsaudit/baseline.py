"""Baseline comparison against an earlier report.

A markdown report carries its finding fingerprints in a trailing HTML
comment; a JSON report carries them per finding. Either can be passed as
``--baseline``.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from cmsaudit.engine import Finding

logger = logging.getLogger(__name__)

BASELINE_MARKER = "cmsaudit-baseline:"
BASELINE_VERSION = 1
_MARKER_RE = re.compile(r"<!--\s*" + re.escape(BASELINE_MARKER) + r"[ \t]*(\{[^\n]*?\})[ \t]*-->")


class BaselineError(ValueError):
    """Raised when a baseline file cannot be used."""


@dataclass
class BaselineDiff:
    new: list[Finding] = field(default_factory=list)
    unchanged: list[Finding] = field(default_factory=list)
    fixed_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "new": len(self.new),
            "unchanged": len(self.unchanged),
            "fixed": self.fixed_count,
            "new_fingerprints": [f.fingerprint for f in self.new],
        }


def finding_locations(findings: list[Finding]) -> dict[str, str]:
    """Fingerprint -> relative path for file-level findings. Project-level findings have no entry."""
    return {f.fingerprint: f.path for f in sorted(findings, key=lambda f: f.fingerprint) if f.path is not None}


def baseline_comment(findings: list[Finding], plugin: str) -> str:
    payload = {
        "version": BASELINE_VERSION,
        "plugin": plugin,
        "fingerprints": sorted({f.fingerprint for f in findings}),
        "locations": finding_locations(findings),
    }
    return f"<!-- {BASELINE_MARKER} {json.dumps(payload, separators=(',', ':'))} -->"


def _locations_from_payload(payload: Any, path: Path) -> dict[str, str | None]:
    if isinstance(payload, dict) and isinstance(payload.get("fingerprints"), list):
        values = payload["fingerprints"]
        recorded = payload.get("locations")
        paths = recorded if isinstance(recorded, dict) else {}
    elif isinstance(payload, dict) and isinstance(payload.get("findings"), list):
        entries = [f for f in payload["findings"] if isinstance(f, dict)]
        values = [f.get("fingerprint") for f in entries]
        paths = {f.get("fingerprint"): f.get("path") for f in entries}
    else:
        msg = f"{path} does not contain cmsaudit findings"
        raise BaselineError(msg)
    if not all(isinstance(v, str) and v for v in values):
        msg = f"{path} contains malformed fingerprints"
        raise BaselineError(msg)
    locations: dict[str, str | None] = {}
    for value in values:
        where = paths.get(value)
        locations[value] = where if isinstance(where, str) else None
    return locations


def load_baseline(path: Path) -> dict[str, str | None]:
    """Fingerprints recorded in a previous markdown or JSON report.

    Each fingerprint maps to the relative path of its finding, or None for
    project-level findings and for reports that predate recorded locations.
    A markdown report is read from its last baseline comment, so marker text
    quoted in an excerpt earlier in the file is never mistaken for it.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        msg = f"Baseline file not found: {path}"
        raise BaselineError(msg) from exc
    except (OSError, UnicodeDecodeError) as exc:
        msg = f"Could not read baseline {path}: {exc}"
        raise BaselineError(msg) from exc

    if path.suffix.lower() == ".json":
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            msg = f"Invalid JSON in baseline {path}: {exc}"
            raise BaselineError(msg) from exc
    else:
        matches = list(_MARKER_RE.finditer(text))
        if not matches:
            msg = f"{path} has no embedded baseline data (was it produced by cmsaudit?)"
            raise BaselineError(msg)
        try:
            payload = json.loads(matches[-1].group(1))
        except json.JSONDecodeError as exc:
            msg = f"Corrupt baseline data in {path}: {exc}"
            raise BaselineError(msg) from exc
    locations = _locations_from_payload(payload, path)

    logger.info("Loaded baseline %s with %d fingerprints", path, len(locations))
    return locations


def compare(
    findings: list[Finding],
    baseline: Mapping[str, str | None] | Iterable[str],
    *,
    only_paths: set[str] | None = None,
) -> BaselineDiff:
    """Split *findings* into new and unchanged against *baseline*.

    With *only_paths* (changes-only), a baseline fingerprint counts as fixed
    only when its file was re-scanned. Project-level entries and entries
    without a recorded path are never counted as fixed there.
    """
    locations = dict(baseline) if isinstance(baseline, Mapping) else dict.fromkeys(baseline)
    diff = BaselineDiff()
    current: set[str] = set()
    for f in findings:
        current.add(f.fingerprint)
        if f.fingerprint in locations:
            diff.unchanged.append(f)
        else:
            diff.new.append(f)
    gone = [fp for fp in locations if fp not in current]
    if only_paths is not None:
        gone = [fp for fp in gone if locations[fp] in only_paths]
    diff.fixed_count = len(gone)
    return diff
