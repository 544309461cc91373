"""Shared CLI helpers used by ``cli.py`` and the ``cli_commands/*.py`` modules.

Provides project discovery, registry loading and plugin resolution so that
every command resolves them the same way.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import click

from cmsaudit.core import CMSAUDIT_DIR_NAME, ProjectConfig, load_project_config, resolve_project_root
from cmsaudit.detector import Detection, best_match, detect
from cmsaudit.rules import Plugin, RuleRegistry, UnknownPluginError, load_registry
from cmsaudit.tracking import TRACKING_TIMEOUT, track_usage
from cmsaudit.walker import SourceTree

logger = logging.getLogger(__name__)


@dataclass
class ProjectContext:
    root: Path
    config: ProjectConfig
    registry: RuleRegistry

    @property
    def cmsaudit_dir(self) -> Path | None:
        candidate = self.root / CMSAUDIT_DIR_NAME
        return candidate if candidate.is_dir() else None

    def tree(self, *, safe_mode: bool = False) -> SourceTree:
        return SourceTree(self.root, exclude=self.config.get("exclude", []), safe_mode=safe_mode)


def fail(message: str) -> NoReturn:
    """Print ``Error: <message>`` to stderr and exit 1."""
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def get_project(ctx: click.Context) -> ProjectContext:
    """Build (once per invocation) the project context for the ``--project`` directory."""
    obj = ctx.ensure_object(dict)
    cached = obj.get("project_context")
    if cached is not None:
        return cached
    start = Path(obj.get("project") or Path.cwd())
    if not start.is_dir():
        fail(f"Project directory not found: {start}")
    root = resolve_project_root(start)
    config = load_project_config(root)
    cmsaudit_dir = root / CMSAUDIT_DIR_NAME
    if cmsaudit_dir.is_dir():
        from cmsaudit.logging import setup_logging

        setup_logging(cmsaudit_dir)
    registry = load_registry(
        cmsaudit_dir if cmsaudit_dir.is_dir() else None,
        disabled_rules=config.get("disabled_rules", []),
    )
    project = ProjectContext(root=root, config=config, registry=registry)
    obj["project_context"] = project
    return project


def resolve_plugin(project: ProjectContext, explicit: str | None, tree: SourceTree) -> tuple[Plugin, Detection | None]:
    """Pick the plugin: ``--plugin``, then config, then best detection.

    The detection for the chosen plugin is returned when one was found, so
    reports can show the detected version.
    """
    name = explicit or project.config.get("plugin")
    if name:
        try:
            plugin = project.registry.get_plugin(name)
        except UnknownPluginError as exc:
            fail(str(exc))
        detection = next((d for d in detect(tree, project.registry) if d.plugin == name), None)
        return plugin, detection
    detection = best_match(tree, project.registry)
    if detection is None:
        available = ", ".join(p.name for p in project.registry.list_plugins())
        fail(f"No supported CMS detected in {project.root}. Use --plugin ({available}).")
    logger.info("Auto-detected plugin %s (score %d)", detection.plugin, detection.score)
    return project.registry.get_plugin(detection.plugin), detection


def ping(project: ProjectContext, plugin: Plugin, command: str, *, agent: str | None = None) -> None:
    """Optional usage ping; never affects the command's outcome.

    Waits at most ``TRACKING_TIMEOUT`` for the request so a short-lived CLI
    process does not exit before it is sent.
    """
    thread = track_usage(
        plugin.name,
        command,
        agent=agent,
        config_url=project.config.get("tracking_url"),
        version=plugin.version,
    )
    if thread is not None:
        thread.join(TRACKING_TIMEOUT)
