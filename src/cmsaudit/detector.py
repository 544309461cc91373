"""Platform detection: which CMS plugin applies to a codebase.

Each plugin carries weighted detection signals (a file glob, optionally a
regex the file must contain). A plugin's score is the sum of the weights of
the signals that hit; each signal counts once however many files match it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from cmsaudit.rules import Plugin, RuleRegistry, compile_pattern
from cmsaudit.walker import SourceTree, glob_match

logger = logging.getLogger(__name__)

HIGH_CONFIDENCE = 6
MEDIUM_CONFIDENCE = 3


@dataclass
class Detection:
    plugin: str
    display_name: str
    score: int
    version: str | None = None
    evidence: list[str] = field(default_factory=list)

    @property
    def confidence(self) -> str:
        if self.score >= HIGH_CONFIDENCE:
            return "high"
        if self.score >= MEDIUM_CONFIDENCE:
            return "medium"
        return "low"

    def to_dict(self) -> dict[str, Any]:
        return {
            "plugin": self.plugin,
            "display_name": self.display_name,
            "score": self.score,
            "confidence": self.confidence,
            "version": self.version,
            "evidence": self.evidence,
        }


def _detect_plugin(plugin: Plugin, tree: SourceTree) -> Detection:
    detection = Detection(plugin=plugin.name, display_name=plugin.display_name, score=0)
    for signal in plugin.detection:
        candidates = [p for p in tree.all_files() if glob_match(p, signal.files)]
        hit: str | None = None
        for path in candidates:
            if signal.pattern is None and signal.version_pattern is None:
                hit = path
                break
            text = tree.read_text(path)
            if text is None:
                continue
            if signal.pattern is not None and not compile_pattern(signal.pattern, True).search(text):
                continue
            hit = path
            if signal.version_pattern and detection.version is None:
                m = compile_pattern(signal.version_pattern, True).search(text)
                if m:
                    detection.version = m.group(1)
            break
        if hit is not None:
            detection.score += signal.weight
            detection.evidence.append(f"{hit}: {signal.label or signal.files}")
    return detection


def detect(tree: SourceTree, registry: RuleRegistry) -> list[Detection]:
    """Score every registered plugin against *tree*.

    Returns detections with a positive score, best first (ties by name).
    """
    results = []
    for plugin in registry.list_plugins():
        det = _detect_plugin(plugin, tree)
        logger.debug("Detection %s: score=%d version=%s", plugin.name, det.score, det.version)
        if det.score > 0:
            results.append(det)
    results.sort(key=lambda d: (-d.score, d.plugin))
    return results


def best_match(tree: SourceTree, registry: RuleRegistry) -> Detection | None:
    found = detect(tree, registry)
    return found[0] if found else None
