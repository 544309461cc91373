"""CLI commands for plugin inspection and manifests."""

from __future__ import annotations

import json as json_mod
import sys
from pathlib import Path

import click

from cmsaudit.cli_common import fail, get_project
from cmsaudit.manifest import (
    DEFAULT_OWNER,
    build_marketplace,
    build_plugin_manifest,
    is_marketplace,
    load_manifest,
    validate_marketplace,
    validate_plugin_manifest,
    write_manifest,
)
from cmsaudit.rules import UnknownPluginError


@click.group("plugins")
def plugins() -> None:
    """Inspect available CMS plugins."""


@plugins.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def plugins_list(ctx: click.Context, as_json: bool) -> None:
    """List available plugins."""
    registry = get_project(ctx).registry
    items = registry.list_plugins()
    if as_json:
        click.echo(
            json_mod.dumps(
                [
                    {
                        "name": p.name,
                        "version": p.version,
                        "display_name": p.display_name,
                        "agents": list(p.agents),
                        "rules": len(p.rules),
                    }
                    for p in items
                ],
                indent=2,
            )
        )
        return
    for p in items:
        click.echo(f"{p.name:<18} v{p.version}  {p.display_name} ({len(p.agents)} agents, {len(p.rules)} rules)")


@plugins.command("show")
@click.argument("name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def plugins_show(ctx: click.Context, name: str, as_json: bool) -> None:
    """Show agents and rules of plugin NAME."""
    registry = get_project(ctx).registry
    try:
        plugin = registry.get_plugin(name)
    except UnknownPluginError as e:
        fail(str(e))

    if as_json:
        data = build_plugin_manifest(plugin)
        data["rules"] = [
            {"agent": r.agent, "code": r.code, "severity": r.severity, "title": r.title, "mode": r.mode}
            for r in plugin.rules
        ]
        click.echo(json_mod.dumps(data, indent=2))
        return

    click.echo(f"{plugin.display_name} ({plugin.name} v{plugin.version})")
    click.echo(plugin.description)
    for agent in plugin.agents.values():
        click.echo(f"\n{agent.display_name} [{agent.name}, {agent.category}]")
        for rule in registry.sort_rules(list(agent.rules)):
            click.echo(f"  {rule.code:<10} {rule.severity:<8} {rule.title}")


@plugins.command("manifest")
@click.argument("name")
@click.option("--output", "-o", default=None, type=click.Path(dir_okay=False), help="Write to file instead of stdout")
@click.pass_context
def plugins_manifest(ctx: click.Context, name: str, output: str | None) -> None:
    """Print the plugin manifest for NAME."""
    registry = get_project(ctx).registry
    try:
        data = build_plugin_manifest(registry.get_plugin(name))
    except UnknownPluginError as e:
        fail(str(e))
    if output:
        write_manifest(Path(output), data)
        click.echo(f"Wrote {output}")
    else:
        click.echo(json_mod.dumps(data, indent=2))


@plugins.command("marketplace")
@click.option("--owner", default=DEFAULT_OWNER, show_default=True, help="Marketplace owner name")
@click.option("--output", "-o", default=None, type=click.Path(dir_okay=False), help="Write to file instead of stdout")
@click.pass_context
def plugins_marketplace(ctx: click.Context, owner: str, output: str | None) -> None:
    """Print a marketplace manifest listing every plugin."""
    data = build_marketplace(get_project(ctx).registry, owner)
    if output:
        write_manifest(Path(output), data)
        click.echo(f"Wrote {output}")
    else:
        click.echo(json_mod.dumps(data, indent=2))


@plugins.command("validate")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def plugins_validate(path: str) -> None:
    """Validate a plugin or marketplace manifest file."""
    try:
        data = load_manifest(Path(path))
    except ValueError as e:
        fail(str(e))
    kind = "marketplace" if is_marketplace(data) else "plugin"
    errors = validate_marketplace(data) if kind == "marketplace" else validate_plugin_manifest(data)
    if errors:
        click.echo(f"Invalid {kind} manifest: {path}", err=True)
        for err in errors:
            click.echo(f"  - {err}", err=True)
        sys.exit(1)
    click.echo(f"Valid {kind} manifest: {path}")


def register(cli: click.Group) -> None:
    """Register the plugins group with the CLI group."""
    cli.add_command(plugins)
