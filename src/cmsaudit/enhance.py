"""Guidance document generation for AI assistants (``cmsaudit enhance``).

The generated text lives between start/end markers so that a later
``--update`` can replace it in place without touching anything the
project's own authors wrote around it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from cmsaudit.core import write_atomic
from cmsaudit.detector import Detection
from cmsaudit.rules import Plugin
from cmsaudit.skills_data import get_skills
from cmsaudit.walker import SourceTree, glob_match

logger = logging.getLogger(__name__)

ENHANCE_START_MARKER = "<!-- cmsaudit:enhance:start -->"
ENHANCE_END_MARKER = "<!-- cmsaudit:enhance:end -->"
DEFAULT_GUIDANCE_FILENAME = "CLAUDE.md"

_LAYOUT_GLOBS = ("**/*.sln", "**/*.csproj", "**/package.json")
_LAYOUT_CAP = 25

_COMMANDS = (
    ("cmsaudit analyze [agent]", "Run the analysis agents and write a scored report"),
    ("cmsaudit security-scan", "Run only the security agents"),
    ("cmsaudit enhance --update", "Regenerate this section"),
    ("cmsaudit detect", "Show which platform was detected and why"),
)


class EnhanceConflictError(FileExistsError):
    """Raised when the target exists and neither update nor force was requested."""


@dataclass
class EnhanceResult:
    path: Path
    action: str  # created | updated | appended | overwritten | dry-run
    content: str


def solution_layout(tree: SourceTree) -> list[str]:
    """Locations of solution, project and package files, capped."""
    found = [p for p in tree.all_files() if any(glob_match(p, g) for g in _LAYOUT_GLOBS)]
    if len(found) > _LAYOUT_CAP:
        extra = len(found) - _LAYOUT_CAP
        return [*found[:_LAYOUT_CAP], f"... and {extra} more"]
    return found


def build_guidance(
    plugin: Plugin,
    *,
    detection: Detection | None = None,
    layout: list[str] | None = None,
    include_examples: bool = False,
    generated_at: datetime | None = None,
) -> str:
    """Render the marked guidance block (markers included)."""
    now = (generated_at or datetime.now(UTC)).date().isoformat()
    lines: list[str] = [ENHANCE_START_MARKER]
    lines.append(f"## {plugin.display_name} project guidance")
    lines.append("")
    lines.append(f"_Generated by cmsaudit ({plugin.name} v{plugin.version}) on {now}._")
    lines.append("")

    lines.append("### Platform")
    lines.append("")
    version = detection.version if detection and detection.version else "unknown"
    lines.append(f"- Platform: {plugin.platform}")
    lines.append(f"- Version: {version}")
    if detection is not None:
        lines.append(f"- Detection confidence: {detection.confidence}")
    lines.append("")

    if layout:
        lines.append("### Solution layout")
        lines.append("")
        lines.extend(f"- `{p}`" for p in layout)
        lines.append("")

    if plugin.guidance:
        lines.append("### Conventions")
        lines.append("")
        lines.extend(f"- {item}" for item in plugin.guidance)
        lines.append("")

    lines.append("### Analysis agents")
    lines.append("")
    for agent in plugin.agents.values():
        lines.append(f"- **{agent.name}** ({agent.category}): {agent.description}")
    lines.append("")

    lines.append("### Commands")
    lines.append("")
    for command, purpose in _COMMANDS:
        lines.append(f"- `{command}`: {purpose}")
    lines.append("")

    if include_examples:
        skills = get_skills(plugin.skills)
        if skills:
            lines.append("### Examples")
            lines.append("")
            for skill in skills:
                lines.append(f"#### {skill['title']}")
                lines.append("")
                lines.append(skill["body"].rstrip("\n"))
                lines.append("")

    lines.append(ENHANCE_END_MARKER)
    return "\n".join(lines)


def replace_block(content: str, block: str) -> tuple[str, bool]:
    """Swap the marked block in *content* for *block*.

    Returns ``(new_content, replaced)``; when there is no start marker the
    block is appended instead. A start marker without an end marker is
    replaced through to the end of the file.
    """
    if ENHANCE_START_MARKER not in content:
        if content and not content.endswith("\n"):
            content += "\n"
        sep = "\n" if content else ""
        return content + sep + block + "\n", False
    start = content.index(ENHANCE_START_MARKER)
    end_pos = content.find(ENHANCE_END_MARKER, start)
    if end_pos == -1:
        return content[:start] + block + "\n", True
    end = end_pos + len(ENHANCE_END_MARKER)
    return content[:start] + block + content[end:], True


def write_guidance(
    target: Path,
    block: str,
    *,
    update: bool = False,
    force: bool = False,
    dry_run: bool = False,
) -> EnhanceResult:
    """Place *block* in *target* according to the update/force/dry-run flags."""
    if not target.exists():
        content = block + "\n"
        action = "created"
    elif force:
        content = block + "\n"
        action = "overwritten"
    elif update:
        existing = target.read_text(encoding="utf-8")
        content, replaced = replace_block(existing, block)
        action = "updated" if replaced else "appended"
    else:
        msg = f"{target} already exists (use --update to refresh the cmsaudit section or --force to overwrite)"
        raise EnhanceConflictError(msg)

    if dry_run:
        return EnhanceResult(path=target, action="dry-run", content=content)

    target.parent.mkdir(parents=True, exist_ok=True)
    write_atomic(target, content)
    logger.info("Guidance %s: %s", action, target)
    return EnhanceResult(path=target, action=action, content=content)
