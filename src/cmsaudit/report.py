"""Report rendering: scored markdown (and JSON) from an analysis result.

The markdown report ends with an HTML comment holding every finding
fingerprint, so the report file itself can be passed back as ``--baseline``.
"""

from __future__ import annotations

import json
import re
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

from cmsaudit.baseline import BaselineDiff, baseline_comment, finding_locations
from cmsaudit.core import DEFAULT_OUTPUT_DIR, at_least, write_atomic
from cmsaudit.detector import Detection
from cmsaudit.engine import MAX_FINDINGS_PER_RULE_PER_FILE, AnalysisResult, Finding
from cmsaudit.rules import Plugin
from cmsaudit.scoring import ScoreCard

_CELL_MAX = 160

# Matches C0/C1 control characters except tab/newline (which we handle separately)
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")


def _sanitize_cell(text: str) -> str:
    """Sanitize untrusted text (paths, source excerpts) for a markdown table cell."""
    text = _CONTROL_CHARS_RE.sub("", text)
    text = text.replace("\r\n", " ").replace("\r", " ").replace("\n", " ")
    text = " ".join(text.split())
    if len(text) > _CELL_MAX:
        text = text[: _CELL_MAX - 3] + "..."
    return text.replace("|", "\\|").replace("`", "'")


def default_report_path(
    project_root: Path,
    plugin: str,
    *,
    kind: str = "analysis",
    on: date | None = None,
    output_dir: str = DEFAULT_OUTPUT_DIR,
) -> Path:
    """``docs/{plugin}-{kind}-{YYYY-MM-DD}.md`` under the project root."""
    day = (on or datetime.now(UTC).date()).isoformat()
    return project_root / output_dir / f"{plugin}-{kind}-{day}.md"


def write_report(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    write_atomic(path, content)


def _visible(findings: list[Finding], min_severity: str) -> list[Finding]:
    return [f for f in findings if at_least(f.severity, min_severity)]


def _finding_row(f: Finding, new_fps: set[str] | None) -> str:
    issue = _sanitize_cell(f.title)
    if f.excerpt:
        issue += f": `{_sanitize_cell(f.excerpt)}`"
    if new_fps is not None and f.fingerprint in new_fps:
        issue = f"**NEW** {issue}"
    location = f"`{_sanitize_cell(f.location)}`" if f.path else f.location
    return f"| {f.code} | {f.severity.capitalize()} | {location} | {issue} |"


def render_markdown(
    result: AnalysisResult,
    card: ScoreCard,
    plugin: Plugin,
    *,
    title: str = "Analysis Report",
    min_severity: str = "info",
    diff: BaselineDiff | None = None,
    detection: Detection | None = None,
    safe_mode: bool = False,
    generated_at: datetime | None = None,
) -> str:
    now_iso = (generated_at or datetime.now(UTC)).isoformat(timespec="seconds")
    visible = _visible(result.findings, min_severity)
    hidden = len(result.findings) - len(visible)
    new_fps = {f.fingerprint for f in diff.new} if diff is not None else None

    lines: list[str] = []
    lines.append(f"# {plugin.display_name} {title}")
    lines.append("")
    lines.append(f"Generated {now_iso} by cmsaudit | Plugin: `{plugin.name}` v{plugin.version}")
    if detection is not None:
        version = f" {detection.version}" if detection.version else ""
        lines.append(f"Detected platform: {plugin.platform}{version} (confidence: {detection.confidence})")
    lines.append("")

    # -- Summary
    lines.append("## Summary")
    lines.append("")
    lines.append("| Metric | Value |")
    lines.append("|---|---|")
    lines.append(f"| Health score | {card.score}/100 (grade {card.grade}) |")
    lines.append(f"| Files scanned | {result.files_scanned} |")
    lines.append(f"| Rules evaluated | {result.rules_evaluated} |")
    for severity, count in card.counts.items():
        lines.append(f"| {severity.capitalize()} | {count} |")
    lines.append("")

    notes: list[str] = []
    if result.changes_only:
        notes.append("Changes-only run: project-level rules were skipped and only changed files were scanned.")
    if safe_mode:
        notes.append("Safe mode: secret stores were not read and source excerpts are redacted.")
    if hidden:
        notes.append(f"{hidden} finding(s) below severity '{min_severity}' are not listed (they still count toward the score).")
    if result.truncated:
        notes.append(f"{result.truncated} repeated match(es) were dropped after {MAX_FINDINGS_PER_RULE_PER_FILE} per rule per file.")
    for note in notes:
        lines.append(f"> {note}")
    if notes:
        lines.append("")

    # -- Baseline
    if diff is not None:
        lines.append("## Baseline Comparison")
        lines.append("")
        lines.append(f"New: {len(diff.new)} | Unchanged: {len(diff.unchanged)} | Fixed: {diff.fixed_count}")
        lines.append("")

    # -- Scores by agent
    lines.append("## Scores by Agent")
    lines.append("")
    lines.append("| Agent | Score | Grade | Critical | Warning | Info |")
    lines.append("|---|---|---|---|---|---|")
    for name, agent_score in card.agents.items():
        agent = plugin.agents.get(name)
        label = agent.display_name if agent else name
        c = agent_score.counts
        lines.append(
            f"| {label} | {agent_score.score} | {agent_score.grade} | {c['critical']} | {c['warning']} | {c['info']} |"
        )
    lines.append("")

    # -- Findings per agent
    for name in result.agents:
        agent = plugin.agents.get(name)
        label = agent.display_name if agent else name
        agent_findings = [f for f in visible if f.agent == name]
        lines.append(f"## {label}")
        lines.append("")
        if agent and agent.description:
            lines.append(f"_{agent.description}_")
            lines.append("")
        if not agent_findings:
            lines.append("No issues found.")
            lines.append("")
            continue
        lines.append("| Code | Severity | Location | Issue |")
        lines.append("|---|---|---|---|")
        for f in agent_findings:
            lines.append(_finding_row(f, new_fps))
        lines.append("")

    # -- Recommendations (one per violated rule)
    lines.append("## Recommendations")
    lines.append("")
    seen: dict[tuple[str, str], int] = {}
    firsts: list[Finding] = []
    for f in visible:
        key = (f.agent, f.code)
        if key not in seen:
            seen[key] = 0
            firsts.append(f)
        seen[key] += 1
    if not firsts:
        lines.append("Nothing to recommend.")
    for f in firsts:
        count = seen[(f.agent, f.code)]
        suffix = f" ({count} occurrences)" if count > 1 else ""
        advice = f.recommendation or f.message
        lines.append(f"- **{f.code}** {f.title}{suffix}: {advice}")
    lines.append("")

    lines.append(baseline_comment(result.findings, plugin.name))
    lines.append("")
    return "\n".join(lines)


def render_json(
    result: AnalysisResult,
    card: ScoreCard,
    plugin: Plugin,
    *,
    min_severity: str = "info",
    diff: BaselineDiff | None = None,
    detection: Detection | None = None,
    generated_at: datetime | None = None,
) -> str:
    payload: dict[str, Any] = {
        "generated_at": (generated_at or datetime.now(UTC)).isoformat(timespec="seconds"),
        "plugin": {"name": plugin.name, "version": plugin.version, "display_name": plugin.display_name},
        "detection": detection.to_dict() if detection else None,
        "agents": result.agents,
        "files_scanned": result.files_scanned,
        "rules_evaluated": result.rules_evaluated,
        "duration_ms": result.duration_ms,
        "changes_only": result.changes_only,
        "min_severity": min_severity,
        "score": card.to_dict(),
        "baseline": diff.to_dict() if diff else None,
        "findings": [f.to_dict() for f in _visible(result.findings, min_severity)],
        "fingerprints": sorted({f.fingerprint for f in result.findings}),
        "locations": finding_locations(result.findings),
    }
    return json.dumps(payload, indent=2) + "\n"
