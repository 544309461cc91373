"""Project bootstrap for ``cmsaudit setup``.

Creates the `.cmsaudit/` directory with its config and custom-rules folder,
and writes a `.claudeignore` tuned to the detected platform. Every step is
idempotent: re-running setup never clobbers user edits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from cmsaudit.core import (
    CMSAUDIT_DIR_NAME,
    CONFIG_FILENAME,
    IGNORE_FILENAME,
    RULES_DIRNAME,
    default_config,
    read_config,
    write_atomic,
    write_config,
)
from cmsaudit.detector import best_match
from cmsaudit.rules import RuleRegistry, load_registry
from cmsaudit.rules_data import GENERIC_IGNORE_PATTERNS
from cmsaudit.walker import SourceTree

logger = logging.getLogger(__name__)

EXAMPLE_RULE_FILENAME = "example.toml.example"

_EXAMPLE_RULE = """\
# Custom rule example. Copy to a *.toml file in this directory to enable it.
plugin = "sitecore-classic"
agent = "quality"

[rule]
code = "CUST-001"
title = "Thread.Sleep in request code"
severity = "warning"
pattern = 'Thread\\.Sleep\\('
files = ["**/*.cs"]
recommendation = "Use async waits or move the work to a background job."
"""


@dataclass
class SetupResult:
    cmsaudit_dir: Path
    plugin: str | None
    messages: list[str] = field(default_factory=list)


def init_project(
    project_root: Path,
    plugin: str | None = None,
    *,
    registry: RuleRegistry | None = None,
) -> SetupResult:
    """Create or refresh `.cmsaudit/` under *project_root*.

    An existing config is kept; its ``plugin`` only changes when *plugin* is
    given explicitly. Without an explicit plugin the best detection is
    recorded for a fresh config.
    """
    registry = registry or load_registry()
    if plugin is not None:
        registry.get_plugin(plugin)

    cmsaudit_dir = project_root / CMSAUDIT_DIR_NAME
    result = SetupResult(cmsaudit_dir=cmsaudit_dir, plugin=plugin)
    if cmsaudit_dir.is_dir():
        result.messages.append(f"{CMSAUDIT_DIR_NAME}/ already exists")
    else:
        cmsaudit_dir.mkdir(parents=True)
        result.messages.append(f"Created {CMSAUDIT_DIR_NAME}/")

    rules_dir = cmsaudit_dir / RULES_DIRNAME
    rules_dir.mkdir(exist_ok=True)
    example = rules_dir / EXAMPLE_RULE_FILENAME
    if not example.exists():
        example.write_text(_EXAMPLE_RULE, encoding="utf-8")

    config_path = cmsaudit_dir / CONFIG_FILENAME
    if config_path.exists():
        config = read_config(cmsaudit_dir)
        if plugin is not None and config.get("plugin") != plugin:
            config["plugin"] = plugin
            write_config(cmsaudit_dir, config)
            result.messages.append(f"Set plugin to {plugin} in {CONFIG_FILENAME}")
        else:
            result.messages.append(f"Kept existing {CONFIG_FILENAME}")
        result.plugin = config.get("plugin")
        return result

    config = default_config()
    if plugin is None:
        detection = best_match(SourceTree(project_root), registry)
        if detection is not None:
            plugin = detection.plugin
            result.messages.append(f"Detected {detection.display_name} (confidence: {detection.confidence})")
        else:
            result.messages.append("No supported CMS detected; set 'plugin' in config.json or pass --plugin")
    if plugin is not None:
        config["plugin"] = plugin
    write_config(cmsaudit_dir, config)
    result.plugin = plugin
    result.messages.append(f"Wrote {CMSAUDIT_DIR_NAME}/{CONFIG_FILENAME}")
    logger.info("Initialized %s (plugin=%s)", cmsaudit_dir, plugin)
    return result


def _existing_patterns(content: str) -> set[str]:
    return {line.strip() for line in content.splitlines() if line.strip() and not line.lstrip().startswith("#")}


def generate_ignore(project_root: Path, plugin: str, *, registry: RuleRegistry | None = None) -> tuple[bool, str]:
    """Write or extend `.claudeignore` with generic and *plugin* patterns.

    Returns ``(changed, message)``.
    """
    registry = registry or load_registry()
    plugin_def = registry.get_plugin(plugin)
    wanted: list[str] = []
    for pattern in [*GENERIC_IGNORE_PATTERNS, *plugin_def.ignore_patterns]:
        if pattern not in wanted:
            wanted.append(pattern)

    header = f"# cmsaudit ({plugin})"
    path = project_root / IGNORE_FILENAME
    if not path.exists():
        write_atomic(path, header + "\n" + "\n".join(wanted) + "\n")
        return True, f"Created {IGNORE_FILENAME} with {len(wanted)} patterns"

    content = path.read_text(encoding="utf-8")
    present = _existing_patterns(content)
    missing = [p for p in wanted if p not in present]
    if not missing:
        return False, f"{IGNORE_FILENAME} already up to date"
    if content and not content.endswith("\n"):
        content += "\n"
    content += "\n" + header + "\n" + "\n".join(missing) + "\n"
    write_atomic(path, content)
    return True, f"Added {len(missing)} patterns to {IGNORE_FILENAME}"
