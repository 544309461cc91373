"""CLI for cmsaudit.

Usage:
    cmsaudit detect                          # Which CMS is this?
    cmsaudit setup --generate-ignore         # Create .cmsaudit/ and .claudeignore
    cmsaudit analyze                         # All agents, report in docs/
    cmsaudit analyze security --no-file      # One agent, report to stdout
    cmsaudit analyze --baseline docs/old.md  # Mark new findings
    cmsaudit security-scan --preview         # What a security scan would cover
    cmsaudit enhance --update                # Refresh the CLAUDE.md section
    cmsaudit plugins list                    # Available plugins
"""

from __future__ import annotations

import click

from cmsaudit import __version__
from cmsaudit.cli_commands import analyze as _analyze
from cmsaudit.cli_commands import enhance as _enhance
from cmsaudit.cli_commands import plugins as _plugins
from cmsaudit.cli_commands import setup as _setup


@click.group()
@click.version_option(version=__version__, prog_name="cmsaudit")
@click.option(
    "--project",
    default=None,
    type=click.Path(file_okay=False),
    help="Project directory (default: current directory)",
)
@click.pass_context
def cli(ctx: click.Context, project: str | None) -> None:
    """cmsaudit: analysis and AI-assistant tooling for CMS codebases."""
    ctx.ensure_object(dict)
    ctx.obj["project"] = project


_analyze.register(cli)
_enhance.register(cli)
_setup.register(cli)
_plugins.register(cli)


if __name__ == "__main__":
    cli()
