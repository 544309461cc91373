"""Fixtures for CLI interface tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
from click.testing import CliRunner, Result

from cmsaudit.cli import cli

Invoke = Callable[..., Result]


@pytest.fixture
def invoke(cli_runner: CliRunner) -> Callable[[Path], Invoke]:
    """Return ``bind(root)`` giving a runner that passes ``--project root`` to every call."""

    def bind(root: Path) -> Invoke:
        def run(*args: str) -> Result:
            return cli_runner.invoke(cli, ["--project", str(root), *args])

        return run

    return bind


@pytest.fixture
def umbraco_cli(umbraco_project: Path, invoke: Callable[[Path], Invoke]) -> tuple[Invoke, Path]:
    """An Umbraco project that has been through ``cmsaudit setup``."""
    run = invoke(umbraco_project)
    result = run("setup")
    assert result.exit_code == 0, result.output
    return run, umbraco_project
