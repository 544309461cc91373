"""CLI commands for analysis: analyze, security-scan."""

from __future__ import annotations

import json as json_mod
import sys
from pathlib import Path

import click

from cmsaudit.baseline import BaselineDiff, BaselineError, compare, load_baseline
from cmsaudit.cli_common import ProjectContext, fail, get_project, ping, resolve_plugin
from cmsaudit.core import DEFAULT_OUTPUT_DIR, SEVERITIES, at_least, parse_severity
from cmsaudit.detector import Detection
from cmsaudit.engine import analyze
from cmsaudit.logging import logged_command
from cmsaudit.report import default_report_path, render_json, render_markdown, write_report
from cmsaudit.rules import Agent, Plugin, UnknownAgentError
from cmsaudit.scoring import ScoreCard, summarize
from cmsaudit.walker import ChangesUnavailableError, SourceTree, changed_files

_SEVERITY_CHOICE = click.Choice(list(SEVERITIES), case_sensitive=False)


def _resolve_path(project: ProjectContext, raw: str) -> Path:
    path = Path(raw)
    if not path.is_absolute() and not path.exists():
        return project.root / path
    return path


def _summary_line(card: ScoreCard) -> str:
    counts = ", ".join(f"{k}: {v}" for k, v in card.counts.items())
    return f"Score: {card.score}/100 (grade {card.grade}) | {counts}"


def _emit(
    project: ProjectContext,
    content: str,
    *,
    plugin: Plugin,
    kind: str,
    output: str | None,
    no_file: bool,
    suffix: str = ".md",
) -> Path | None:
    """Print *content* or write it to the report path. Returns the written path."""
    if no_file:
        click.echo(content, nl=False)
        return None
    if output:
        path = _resolve_path(project, output)
    else:
        output_dir = project.config.get("output_dir") or DEFAULT_OUTPUT_DIR
        path = default_report_path(project.root, plugin.name, kind=kind, output_dir=output_dir)
        path = path.with_suffix(suffix)
    try:
        write_report(path, content)
    except OSError as e:
        fail(f"Could not write report to {path}: {e}")
    return path


def _changed_paths(project: ProjectContext, changes_only: bool, base: str) -> set[str] | None:
    if not changes_only:
        return None
    try:
        return changed_files(project.root, base)
    except ChangesUnavailableError as e:
        fail(str(e))


@click.command("analyze")
@click.argument("agent", default="all")
@click.option("--plugin", default=None, help="Plugin to use (default: config, then detection)")
@click.option("--output", "-o", default=None, help="Report path (default: docs/{plugin}-analysis-{date}.md)")
@click.option("--no-file", is_flag=True, help="Print the report instead of writing it")
@click.option("--safe-mode", is_flag=True, help="Skip secret stores and redact source excerpts")
@click.option("--severity", default=None, type=_SEVERITY_CHOICE, help="Minimum severity to list in the report")
@click.option("--baseline", default=None, help="Earlier report (markdown or JSON) to compare against")
@click.option("--changes-only", is_flag=True, help="Only scan files changed relative to --base (git)")
@click.option("--base", default="HEAD", show_default=True, help="Git ref for --changes-only")
@click.option(
    "--format",
    "fmt",
    default="markdown",
    type=click.Choice(["markdown", "json"], case_sensitive=False),
    help="Report format",
)
@click.option("--fail-on", default=None, type=_SEVERITY_CHOICE, help="Exit 1 when findings at or above this level exist")
@click.pass_context
@logged_command("analyze")
def analyze_cmd(
    ctx: click.Context,
    agent: str,
    plugin: str | None,
    output: str | None,
    no_file: bool,
    safe_mode: bool,
    severity: str | None,
    baseline: str | None,
    changes_only: bool,
    base: str,
    fmt: str,
    fail_on: str | None,
) -> None:
    """Run AGENT (or all agents) and write a scored report."""
    project = get_project(ctx)
    try:
        min_severity = parse_severity(severity or project.config.get("min_severity") or "info")
    except ValueError as e:
        fail(str(e))

    tree = project.tree(safe_mode=safe_mode)
    plugin_def, detection = resolve_plugin(project, plugin, tree)
    try:
        agents = project.registry.select_agents(plugin_def.name, agent)
    except UnknownAgentError as e:
        fail(str(e))

    diff: BaselineDiff | None = None
    baseline_fps: dict[str, str | None] | None = None
    if baseline:
        try:
            baseline_fps = load_baseline(_resolve_path(project, baseline))
        except BaselineError as e:
            fail(str(e))

    only_paths = _changed_paths(project, changes_only, base)
    result = analyze(tree, plugin_def, agents, only_paths=only_paths, safe_mode=safe_mode)
    card = summarize(result.findings, result.agents)
    if baseline_fps is not None:
        diff = compare(result.findings, baseline_fps, only_paths=only_paths)

    if fmt.lower() == "json":
        content = render_json(result, card, plugin_def, min_severity=min_severity, diff=diff, detection=detection)
        suffix = ".json"
    else:
        content = render_markdown(
            result,
            card,
            plugin_def,
            min_severity=min_severity,
            diff=diff,
            detection=detection,
            safe_mode=safe_mode,
        )
        suffix = ".md"
    written = _emit(project, content, plugin=plugin_def, kind="analysis", output=output, no_file=no_file, suffix=suffix)

    if written is not None:
        click.echo(f"Wrote {written}")
    click.echo(_summary_line(card), err=no_file)
    if diff is not None:
        click.echo(f"New: {len(diff.new)} | Unchanged: {len(diff.unchanged)} | Fixed: {diff.fixed_count}", err=no_file)

    ping(project, plugin_def, "analyze", agent=None if agent == "all" else agent)

    if fail_on:
        gating = diff.new if diff is not None else result.findings
        failing = [f for f in gating if at_least(f.severity, fail_on.lower())]
        if failing:
            click.echo(f"{len(failing)} finding(s) at or above '{fail_on.lower()}'", err=True)
            sys.exit(1)


def _preview(tree: SourceTree, plugin: Plugin, agents: list[Agent], detection: Detection | None, as_json: bool) -> None:
    rows = []
    for agent in agents:
        for rule in agent.rules:
            rows.append(
                {
                    "agent": agent.name,
                    "code": rule.code,
                    "severity": rule.severity,
                    "title": rule.title,
                    "files": len(tree.files(rule.files, rule.exclude_files)),
                }
            )
    if as_json:
        click.echo(
            json_mod.dumps(
                {
                    "plugin": plugin.name,
                    "detection": detection.to_dict() if detection else None,
                    "agents": [a.name for a in agents],
                    "rules": rows,
                },
                indent=2,
            )
        )
        return
    click.echo(f"Security scan preview for {plugin.display_name}")
    click.echo(f"Agents: {', '.join(a.name for a in agents)}")
    for row in rows:
        click.echo(f"  {row['code']:<10} {row['severity']:<8} {row['files']:>4} file(s)  {row['title']}")
    click.echo("Nothing was scanned.")


@click.command("security-scan")
@click.option("--plugin", default=None, help="Plugin to use (default: config, then detection)")
@click.option("--preview", is_flag=True, help="List the security rules and target files without scanning")
@click.option("--output", "-o", default=None, help="Report path (default: docs/{plugin}-security-scan-{date}.md)")
@click.option("--no-file", is_flag=True, help="Print the report instead of writing it")
@click.option("--safe-mode", is_flag=True, help="Skip secret stores and redact source excerpts")
@click.option("--json", "as_json", is_flag=True, help="Preview output as JSON")
@click.pass_context
@logged_command("security-scan")
def security_scan(
    ctx: click.Context,
    plugin: str | None,
    preview: bool,
    output: str | None,
    no_file: bool,
    safe_mode: bool,
    as_json: bool,
) -> None:
    """Run only the security agents of the plugin."""
    project = get_project(ctx)
    tree = project.tree(safe_mode=safe_mode)
    plugin_def, detection = resolve_plugin(project, plugin, tree)
    agents = project.registry.security_agents(plugin_def.name)
    if not agents:
        fail(f"Plugin '{plugin_def.name}' has no security agents")

    if preview:
        _preview(tree, plugin_def, agents, detection, as_json)
        return

    result = analyze(tree, plugin_def, agents, safe_mode=safe_mode)
    card = summarize(result.findings, result.agents)
    content = render_markdown(
        result,
        card,
        plugin_def,
        title="Security Scan",
        detection=detection,
        safe_mode=safe_mode,
    )
    written = _emit(project, content, plugin=plugin_def, kind="security-scan", output=output, no_file=no_file)
    if written is not None:
        click.echo(f"Wrote {written}")
    click.echo(_summary_line(card), err=no_file)
    ping(project, plugin_def, "security-scan")


def register(cli: click.Group) -> None:
    """Register analysis commands with the CLI group."""
    cli.add_command(analyze_cmd)
    cli.add_command(security_scan)
