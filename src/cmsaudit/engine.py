"""Rule engine: runs the selected agents of a plugin over a source tree."""

from __future__ import annotations

import bisect
import hashlib
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from cmsaudit.core import Severity, severity_rank
from cmsaudit.rules import Agent, Plugin, Rule
from cmsaudit.walker import SourceTree

logger = logging.getLogger(__name__)

MAX_FINDINGS_PER_RULE_PER_FILE = 50
_EXCERPT_MAX = 200
REDACTED = "[redacted]"


@dataclass
class Finding:
    plugin: str
    agent: str
    code: str
    severity: Severity
    title: str
    message: str = ""
    recommendation: str = ""
    path: str | None = None
    line: int | None = None
    excerpt: str = ""
    fingerprint: str = ""

    @property
    def location(self) -> str:
        if self.path is None:
            return "(project)"
        if self.line is None:
            return self.path
        return f"{self.path}:{self.line}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "plugin": self.plugin,
            "agent": self.agent,
            "code": self.code,
            "severity": self.severity,
            "title": self.title,
            "message": self.message,
            "recommendation": self.recommendation,
            "path": self.path,
            "line": self.line,
            "excerpt": self.excerpt,
            "fingerprint": self.fingerprint,
        }


@dataclass
class AnalysisResult:
    plugin: str
    agents: list[str]
    findings: list[Finding] = field(default_factory=list)
    files_scanned: int = 0
    rules_evaluated: int = 0
    truncated: int = 0
    duration_ms: float = 0.0
    changes_only: bool = False
    skipped_files: dict[str, int] = field(default_factory=dict)


def fingerprint(plugin: str, code: str, path: str | None, excerpt: str) -> str:
    """Stable identity of a finding: independent of line numbers and whitespace."""
    normalized = " ".join(excerpt.split())
    raw = "\x1f".join([plugin, code, path or "", normalized])
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()[:16]


def _line_starts(text: str) -> list[int]:
    starts = [0]
    pos = text.find("\n")
    while pos != -1:
        starts.append(pos + 1)
        pos = text.find("\n", pos + 1)
    return starts


def _line_text(text: str, starts: list[int], index: int) -> str:
    begin = starts[index]
    end = starts[index + 1] - 1 if index + 1 < len(starts) else len(text)
    return text[begin:end].rstrip("\r")


def _trim(line: str) -> str:
    line = line.strip()
    if len(line) > _EXCERPT_MAX:
        line = line[: _EXCERPT_MAX - 3] + "..."
    return line


class Engine:
    """Evaluates rules against files. One instance per analysis run."""

    def __init__(self, tree: SourceTree, plugin: Plugin, *, safe_mode: bool = False) -> None:
        self.tree = tree
        self.plugin = plugin
        self.safe_mode = safe_mode
        self.truncated = 0
        self._scanned: set[str] = set()

    def _finding(self, rule: Rule, path: str | None, line: int | None, excerpt: str) -> Finding:
        # Fingerprint is taken from the real excerpt; only the displayed excerpt is redacted.
        fp = fingerprint(self.plugin.name, rule.code, path, excerpt)
        return Finding(
            plugin=self.plugin.name,
            agent=rule.agent,
            code=rule.code,
            severity=rule.severity,
            title=rule.title,
            message=rule.description,
            recommendation=rule.recommendation,
            path=path,
            line=line,
            excerpt=REDACTED if self.safe_mode and excerpt else excerpt,
            fingerprint=fp,
        )

    def run_match_rule(self, rule: Rule, paths: list[str]) -> list[Finding]:
        findings: list[Finding] = []
        regex = rule.regex
        for path in paths:
            text = self.tree.read_text(path)
            if text is None:
                continue
            self._scanned.add(path)
            starts: list[int] | None = None
            seen_lines: set[int] = set()
            for m in regex.finditer(text):
                if starts is None:
                    starts = _line_starts(text)
                index = bisect.bisect_right(starts, m.start()) - 1
                if index in seen_lines:
                    continue
                if len(seen_lines) >= MAX_FINDINGS_PER_RULE_PER_FILE:
                    self.truncated += 1
                    continue
                seen_lines.add(index)
                excerpt = _trim(_line_text(text, starts, index))
                findings.append(self._finding(rule, path, index + 1, excerpt))
        return findings

    def run_absent_rule(self, rule: Rule, paths: list[str]) -> list[Finding]:
        """Project-level rule: one finding when targeted files exist but none contain the pattern."""
        if not paths:
            return []
        regex = rule.regex
        readable = 0
        for path in paths:
            text = self.tree.read_text(path)
            if text is None:
                continue
            readable += 1
            self._scanned.add(path)
            if regex.search(text):
                return []
        if not readable:
            return []
        return [self._finding(rule, None, None, "")]

    def run(self, agents: list[Agent], *, only_paths: set[str] | None = None) -> AnalysisResult:
        """Evaluate every rule of *agents*.

        With *only_paths* (changes-only), match rules look at those files only
        and absent rules are skipped, because they describe the whole project.
        """
        started = time.monotonic()
        result = AnalysisResult(
            plugin=self.plugin.name,
            agents=[a.name for a in agents],
            changes_only=only_paths is not None,
        )
        agent_order = {a.name: i for i, a in enumerate(agents)}
        for agent in agents:
            for rule in agent.rules:
                if rule.mode == "absent" and only_paths is not None:
                    logger.debug("Skipping project-level rule %s in changes-only mode", rule.code)
                    continue
                paths = self.tree.files(rule.files, rule.exclude_files)
                if only_paths is not None:
                    paths = [p for p in paths if p in only_paths]
                result.rules_evaluated += 1
                if rule.mode == "absent":
                    result.findings.extend(self.run_absent_rule(rule, paths))
                else:
                    result.findings.extend(self.run_match_rule(rule, paths))

        result.findings.sort(
            key=lambda f: (
                severity_rank(f.severity),
                agent_order.get(f.agent, len(agent_order)),
                f.code,
                f.path or "",
                f.line or 0,
            )
        )
        result.files_scanned = len(self._scanned)
        result.truncated = self.truncated
        result.skipped_files = dict(self.tree.skipped)
        result.duration_ms = round((time.monotonic() - started) * 1000, 1)
        logger.info(
            "Analysis of %s complete: %d findings, %d files, %d rules",
            self.plugin.name,
            len(result.findings),
            result.files_scanned,
            result.rules_evaluated,
            extra={"duration_ms": result.duration_ms},
        )
        return result


def analyze(
    tree: SourceTree,
    plugin: Plugin,
    agents: list[Agent],
    *,
    only_paths: set[str] | None = None,
    safe_mode: bool = False,
) -> AnalysisResult:
    return Engine(tree, plugin, safe_mode=safe_mode).run(agents, only_paths=only_paths)
