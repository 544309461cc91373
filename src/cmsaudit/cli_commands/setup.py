"""CLI commands for project setup and platform detection."""

from __future__ import annotations

import json as json_mod

import click

from cmsaudit.bootstrap import generate_ignore, init_project
from cmsaudit.cli_common import fail, get_project, ping
from cmsaudit.detector import detect
from cmsaudit.logging import logged_command, setup_logging
from cmsaudit.rules import UnknownPluginError


@click.command("setup")
@click.option("--plugin", default=None, help="Plugin to record in config (default: detection)")
@click.option("--generate-ignore", "gen_ignore", is_flag=True, help="Write or extend .claudeignore for the platform")
@click.pass_context
@logged_command("setup")
def setup(ctx: click.Context, plugin: str | None, gen_ignore: bool) -> None:
    """Create .cmsaudit/ and record the project's plugin."""
    project = get_project(ctx)
    try:
        result = init_project(project.root, plugin, registry=project.registry)
    except UnknownPluginError as e:
        fail(str(e))
    setup_logging(result.cmsaudit_dir)
    for message in result.messages:
        click.echo(message)

    if gen_ignore:
        if result.plugin is None:
            fail("Cannot generate .claudeignore without a plugin (pass --plugin)")
        try:
            _changed, message = generate_ignore(project.root, result.plugin, registry=project.registry)
        except UnknownPluginError as e:
            fail(str(e))
        click.echo(message)

    if result.plugin is not None and project.registry.has_plugin(result.plugin):
        ping(project, project.registry.get_plugin(result.plugin), "setup")
    click.echo("\nNext: cmsaudit analyze")


@click.command("detect")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def detect_cmd(ctx: click.Context, as_json: bool) -> None:
    """Show which CMS platforms the project looks like."""
    project = get_project(ctx)
    found = detect(project.tree(), project.registry)
    if as_json:
        click.echo(json_mod.dumps([d.to_dict() for d in found], indent=2))
        return
    if not found:
        click.echo("No supported CMS detected")
        return
    for d in found:
        version = f" {d.version}" if d.version else ""
        click.echo(f"{d.plugin}{version}  score={d.score} confidence={d.confidence}")
        for item in d.evidence:
            click.echo(f"  - {item}")


def register(cli: click.Group) -> None:
    """Register setup commands with the CLI group."""
    cli.add_command(setup)
    cli.add_command(detect_cmd)
