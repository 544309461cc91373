"""CLI tests for analyze and security-scan."""

from __future__ import annotations

import json
import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path

import pytest

from tests.cli.conftest import Invoke
from tests.conftest import UrlopenRecorder


def _git(cwd: Path, *args: str) -> None:
    subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True)


def _report(root: Path, kind: str = "analysis", suffix: str = ".md") -> Path:
    reports = sorted((root / "docs").glob(f"*-{kind}-*{suffix}"))
    assert len(reports) == 1
    return reports[0]


class TestAnalyze:
    def test_writes_default_report(self, umbraco_cli: tuple[Invoke, Path]) -> None:
        run, root = umbraco_cli
        result = run("analyze")
        assert result.exit_code == 0, result.output
        report = _report(root)
        assert report.name.startswith("umbraco-analysis-")
        assert f"Wrote {report}" in result.output
        assert "Score: " in result.output
        assert "critical: 1" in result.output
        text = report.read_text()
        assert text.startswith("# Umbraco CMS Analysis Report")
        assert "SEC-001" in text

    def test_auto_detects_without_setup(self, umbraco_project: Path, invoke: Callable[[Path], Invoke]) -> None:
        result = invoke(umbraco_project)("analyze", "--no-file")
        assert result.exit_code == 0, result.output
        assert "# Umbraco CMS Analysis Report" in result.stdout
        assert "Score: " in result.stderr
        assert not (umbraco_project / "docs").exists()

    def test_single_agent(self, umbraco_cli: tuple[Invoke, Path]) -> None:
        run, _ = umbraco_cli
        result = run("analyze", "security", "--no-file")
        assert result.exit_code == 0, result.output
        assert "## Security" in result.stdout
        assert "## Code Quality" not in result.stdout

    def test_unknown_agent(self, umbraco_cli: tuple[Invoke, Path]) -> None:
        run, _ = umbraco_cli
        result = run("analyze", "helix")
        assert result.exit_code == 1
        assert "Unknown agent 'helix' for plugin 'umbraco'" in result.output

    def test_unknown_plugin(self, umbraco_cli: tuple[Invoke, Path]) -> None:
        run, _ = umbraco_cli
        result = run("analyze", "--plugin", "drupal")
        assert result.exit_code == 1
        assert "Unknown plugin 'drupal'" in result.output

    def test_nothing_detected(self, tmp_path: Path, invoke: Callable[[Path], Invoke]) -> None:
        result = invoke(tmp_path)("analyze")
        assert result.exit_code == 1
        assert "No supported CMS detected" in result.output
        assert "--plugin" in result.output

    def test_explicit_output_relative_to_project(self, umbraco_cli: tuple[Invoke, Path]) -> None:
        run, root = umbraco_cli
        result = run("analyze", "-o", "reports/latest.md")
        assert result.exit_code == 0, result.output
        assert (root / "reports" / "latest.md").is_file()

    def test_json_format(self, umbraco_cli: tuple[Invoke, Path]) -> None:
        run, root = umbraco_cli
        result = run("analyze", "--format", "json")
        assert result.exit_code == 0, result.output
        data = json.loads(_report(root, suffix=".json").read_text())
        assert data["plugin"]["name"] == "umbraco"
        assert {f["code"] for f in data["findings"]} >= {"SEC-001", "SEC-003"}

    def test_json_to_stdout(self, umbraco_cli: tuple[Invoke, Path]) -> None:
        run, _ = umbraco_cli
        result = run("analyze", "--format", "json", "--no-file")
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["score"]["score"] < 100

    def test_severity_filter(self, umbraco_cli: tuple[Invoke, Path]) -> None:
        run, _ = umbraco_cli
        result = run("analyze", "--severity", "critical", "--no-file")
        assert result.exit_code == 0, result.output
        assert "| SEC-001 |" in result.stdout
        assert "| SEC-003 |" not in result.stdout

    def test_config_min_severity(self, umbraco_cli: tuple[Invoke, Path]) -> None:
        run, root = umbraco_cli
        config_path = root / ".cmsaudit" / "config.json"
        config = json.loads(config_path.read_text())
        config["min_severity"] = "critical"
        config_path.write_text(json.dumps(config))
        result = run("analyze", "--no-file")
        assert "| SEC-003 |" not in result.stdout

    def test_safe_mode(self, umbraco_cli: tuple[Invoke, Path]) -> None:
        run, _ = umbraco_cli
        result = run("analyze", "--safe-mode", "--no-file")
        assert result.exit_code == 0, result.output
        assert "> Safe mode:" in result.stdout
        assert "hunter2" not in result.stdout

    def test_fail_on(self, umbraco_cli: tuple[Invoke, Path]) -> None:
        run, _ = umbraco_cli
        result = run("analyze", "--fail-on", "critical")
        assert result.exit_code == 1
        assert "1 finding(s) at or above 'critical'" in result.stderr

    def test_fail_on_not_triggered(self, umbraco_cli: tuple[Invoke, Path]) -> None:
        run, root = umbraco_cli
        (root / "src" / "Site" / "appsettings.json").write_text("{}\n")
        result = run("analyze", "security", "--fail-on", "critical")
        assert result.exit_code == 0, result.output

    def test_log_written(self, umbraco_cli: tuple[Invoke, Path]) -> None:
        run, root = umbraco_cli
        run("analyze")
        records = [json.loads(line) for line in (root / ".cmsaudit" / "cmsaudit.log").read_text().splitlines()]
        finished = [r for r in records if r["msg"] == "analyze finished"]
        assert finished
        assert finished[-1]["command"] == "analyze"


class TestBaseline:
    def test_second_run_has_nothing_new(self, umbraco_cli: tuple[Invoke, Path]) -> None:
        run, root = umbraco_cli
        run("analyze", "-o", "docs/before.md")
        result = run("analyze", "--baseline", "docs/before.md", "--no-file")
        assert result.exit_code == 0, result.output
        assert "New: 0 |" in result.stderr
        assert "Fixed: 0" in result.stderr

    def test_new_finding_gates_fail_on(self, umbraco_cli: tuple[Invoke, Path]) -> None:
        run, root = umbraco_cli
        run("analyze", "-o", "docs/before.md")
        # baselined findings do not gate
        assert run("analyze", "--baseline", "docs/before.md", "--fail-on", "critical").exit_code == 0

        (root / "src" / "Site" / "Views" / "Other.cshtml").write_text('@Html.Raw(Model.Value("x"))\n')
        result = run("analyze", "--baseline", "docs/before.md", "--fail-on", "warning", "-o", "docs/after.md")
        assert result.exit_code == 1
        assert "New: 1 |" in result.output
        assert "**NEW**" in (root / "docs" / "after.md").read_text()

    def test_missing_baseline(self, umbraco_cli: tuple[Invoke, Path]) -> None:
        run, _ = umbraco_cli
        result = run("analyze", "--baseline", "docs/nope.md")
        assert result.exit_code == 1
        assert "not found" in result.output


class TestChangesOnly:
    def test_outside_git(self, umbraco_cli: tuple[Invoke, Path]) -> None:
        run, _ = umbraco_cli
        result = run("analyze", "--changes-only")
        assert result.exit_code == 1
        assert result.output.startswith("Error:")


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
class TestChangesOnlyBaseline:
    def _commit_all(self, root: Path) -> None:
        _git(root, "init", "-q")
        _git(root, "config", "user.email", "dev@example.com")
        _git(root, "config", "user.name", "Dev")
        _git(root, "add", ".")
        _git(root, "commit", "-q", "-m", "baseline")

    def test_unscanned_files_are_not_fixed(self, umbraco_cli: tuple[Invoke, Path]) -> None:
        run, root = umbraco_cli
        assert run("analyze", "-o", "docs/before.md").exit_code == 0
        self._commit_all(root)
        (root / "src" / "Readme.cs").write_text("// nothing to see here\n")

        result = run("analyze", "--changes-only", "--baseline", "docs/before.md", "--no-file")
        assert result.exit_code == 0, result.output
        assert "New: 0 | Unchanged: 0 | Fixed: 0" in result.stderr

    def test_fix_in_changed_file_is_counted(self, umbraco_cli: tuple[Invoke, Path]) -> None:
        run, root = umbraco_cli
        assert run("analyze", "-o", "docs/before.md").exit_code == 0
        self._commit_all(root)
        (root / "src" / "Site" / "appsettings.json").write_text("{}\n")

        result = run("analyze", "--changes-only", "--baseline", "docs/before.md", "--format", "json", "--no-file")
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["changes_only"] is True
        assert data["baseline"]["new"] == 0
        assert data["baseline"]["fixed"] >= 1


class TestUsagePing:
    def test_sent_before_exit(
        self,
        umbraco_cli: tuple[Invoke, Path],
        monkeypatch: pytest.MonkeyPatch,
        urlopen_recorder: UrlopenRecorder,
    ) -> None:
        run, _ = umbraco_cli
        monkeypatch.setenv("CMSAUDIT_TRACKING_URL", "http://t.example/track")
        result = run("analyze", "security", "--no-file")
        assert result.exit_code == 0, result.output
        assert len(urlopen_recorder.calls) == 1
        body = json.loads(urlopen_recorder.calls[0][0].data)  # type: ignore[arg-type]
        assert body["command"] == "analyze"
        assert body["agent"] == "security"
        assert urlopen_recorder.responses[0].closed


class TestSecurityScan:
    def test_writes_report(self, umbraco_cli: tuple[Invoke, Path]) -> None:
        run, root = umbraco_cli
        result = run("security-scan")
        assert result.exit_code == 0, result.output
        report = _report(root, kind="security-scan")
        text = report.read_text()
        assert text.startswith("# Umbraco CMS Security Scan")
        assert "## Code Quality" not in text
        assert "SEC-001" in text

    def test_preview_scans_nothing(self, umbraco_cli: tuple[Invoke, Path]) -> None:
        run, root = umbraco_cli
        result = run("security-scan", "--preview")
        assert result.exit_code == 0, result.output
        assert "Security scan preview for Umbraco CMS" in result.output
        assert "Agents: security" in result.output
        assert "SEC-001" in result.output
        assert "Nothing was scanned." in result.output
        assert not (root / "docs").exists()

    def test_preview_json(self, umbraco_cli: tuple[Invoke, Path]) -> None:
        run, _ = umbraco_cli
        result = run("security-scan", "--preview", "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["plugin"] == "umbraco"
        assert data["agents"] == ["security"]
        sec1 = next(r for r in data["rules"] if r["code"] == "SEC-001")
        assert sec1["files"] == 1
