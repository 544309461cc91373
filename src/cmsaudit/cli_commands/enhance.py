"""CLI command for AI-assistant guidance generation."""

from __future__ import annotations

from pathlib import Path

import click

from cmsaudit.cli_common import fail, get_project, ping, resolve_plugin
from cmsaudit.enhance import DEFAULT_GUIDANCE_FILENAME, EnhanceConflictError, build_guidance, solution_layout, write_guidance
from cmsaudit.logging import logged_command


@click.command("enhance")
@click.option("--plugin", default=None, help="Plugin to use (default: config, then detection)")
@click.option("--output", "-o", default=None, help=f"Target file (default: {DEFAULT_GUIDANCE_FILENAME})")
@click.option("--dry-run", is_flag=True, help="Print the result without writing")
@click.option("--include-examples", is_flag=True, help="Append the plugin's code examples")
@click.option("--update", is_flag=True, help="Replace the cmsaudit section of an existing file")
@click.option("--force", is_flag=True, help="Overwrite an existing file completely")
@click.pass_context
@logged_command("enhance")
def enhance(
    ctx: click.Context,
    plugin: str | None,
    output: str | None,
    dry_run: bool,
    include_examples: bool,
    update: bool,
    force: bool,
) -> None:
    """Generate project guidance for AI assistants."""
    if update and force:
        fail("--update and --force are mutually exclusive")
    project = get_project(ctx)
    tree = project.tree()
    plugin_def, detection = resolve_plugin(project, plugin, tree)

    block = build_guidance(
        plugin_def,
        detection=detection,
        layout=solution_layout(tree),
        include_examples=include_examples,
    )
    target = Path(output) if output else project.root / DEFAULT_GUIDANCE_FILENAME
    if not target.is_absolute():
        target = project.root / target
    try:
        result = write_guidance(target, block, update=update, force=force, dry_run=dry_run)
    except EnhanceConflictError as e:
        fail(str(e))
    except OSError as e:
        fail(f"Could not write {target}: {e}")

    if dry_run:
        click.echo(result.content, nl=False)
        return
    click.echo(f"{result.action.capitalize()} {result.path}")
    ping(project, plugin_def, "enhance")


def register(cli: click.Group) -> None:
    """Register the enhance command with the CLI group."""
    cli.add_command(enhance)
