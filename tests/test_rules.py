"""Tests for the rule registry: parsing, validation, custom rules and queries."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from cmsaudit.rules import (
    Rule,
    RuleRegistry,
    UnknownAgentError,
    UnknownPluginError,
    compile_pattern,
    list_custom_rule_files,
    load_registry,
)


def _rule(**overrides: Any) -> dict[str, Any]:
    raw: dict[str, Any] = {
        "code": "TEST-001",
        "title": "Test rule",
        "severity": "warning",
        "pattern": r"Thread\.Sleep\(",
        "files": ["**/*.cs"],
    }
    raw.update(overrides)
    return raw


def _plugin(**overrides: Any) -> dict[str, Any]:
    raw: dict[str, Any] = {
        "plugin": "test-cms",
        "display_name": "Test CMS",
        "detection": [{"files": "**/test.json", "weight": 1}],
        "agents": [{"agent": "quality", "category": "quality", "rules": [_rule()]}],
    }
    raw.update(overrides)
    return raw


class TestParseRule:
    def test_minimal(self) -> None:
        rule = RuleRegistry.parse_rule(_rule(), agent="quality")
        assert rule.code == "TEST-001"
        assert rule.agent == "quality"
        assert rule.files == ("**/*.cs",)
        assert rule.mode == "match"

    def test_severity_is_normalized(self) -> None:
        rule = RuleRegistry.parse_rule(_rule(severity="Critical"))
        assert rule.severity == "critical"

    def test_single_glob_string_is_accepted(self) -> None:
        rule = RuleRegistry.parse_rule(_rule(files="**/web.config"))
        assert rule.files == ("**/web.config",)

    @pytest.mark.parametrize("code", ["sec-001", "SEC001", "S-001", "SEC-1", "TOOLONGPREFIX-001"])
    def test_invalid_codes(self, code: str) -> None:
        with pytest.raises(ValueError, match="Invalid issue code"):
            RuleRegistry.parse_rule(_rule(code=code))

    def test_invalid_mode(self) -> None:
        with pytest.raises(ValueError, match="invalid mode"):
            RuleRegistry.parse_rule(_rule(mode="sometimes"))

    def test_pattern_must_compile(self) -> None:
        with pytest.raises(ValueError, match="does not compile"):
            RuleRegistry.parse_rule(_rule(pattern="(unclosed"))

    def test_empty_files_rejected(self) -> None:
        with pytest.raises(ValueError, match="at least one glob"):
            RuleRegistry.parse_rule(_rule(files=[]))

    def test_missing_key_raises_key_error(self) -> None:
        raw = _rule()
        del raw["title"]
        with pytest.raises(KeyError):
            RuleRegistry.parse_rule(raw)

    def test_ignore_case_regex(self) -> None:
        rule = RuleRegistry.parse_rule(_rule(pattern="password=", ignore_case=True))
        assert rule.regex.search("PASSWORD=x")


class TestCompilePattern:
    def test_multiline_anchors(self) -> None:
        regex = compile_pattern(r"^public")
        assert regex.search("class A\npublic int X;")

    def test_cached(self) -> None:
        assert compile_pattern("abc") is compile_pattern("abc")


class TestParsePlugin:
    def test_parses_agents_and_detection(self) -> None:
        plugin = RuleRegistry.parse_plugin(_plugin())
        assert plugin.name == "test-cms"
        assert list(plugin.agents) == ["quality"]
        assert plugin.detection[0].weight == 1
        assert plugin.find_rule("TEST-001") is not None
        assert plugin.find_rule("NOPE-001") is None

    def test_duplicate_agent_rejected(self) -> None:
        agent = {"agent": "quality", "rules": [_rule()]}
        with pytest.raises(ValueError, match="duplicate agent"):
            RuleRegistry.parse_plugin(_plugin(agents=[agent, agent]))

    def test_invalid_category(self) -> None:
        with pytest.raises(ValueError, match="invalid category"):
            RuleRegistry.parse_plugin(_plugin(agents=[{"agent": "misc", "rules": [_rule()]}]))

    def test_bad_detection_regex(self) -> None:
        with pytest.raises(ValueError, match="does not compile"):
            RuleRegistry.parse_plugin(_plugin(detection=[{"files": "*.json", "pattern": "("}]))

    def test_too_many_rules(self) -> None:
        rules = [_rule(code=f"TEST-{i:03d}") for i in range(RuleRegistry.MAX_RULES_PER_AGENT + 1)]
        with pytest.raises(ValueError, match="max"):
            RuleRegistry.parse_plugin(_plugin(agents=[{"agent": "quality", "rules": rules}]))


class TestValidatePlugin:
    def test_valid(self) -> None:
        assert RuleRegistry.validate_plugin(RuleRegistry.parse_plugin(_plugin())) == []

    def test_duplicate_codes_across_agents(self) -> None:
        agents = [
            {"agent": "quality", "rules": [_rule()]},
            {"agent": "security", "rules": [_rule()]},
        ]
        errors = RuleRegistry.validate_plugin(RuleRegistry.parse_plugin(_plugin(agents=agents)))
        assert any("duplicate issue code" in e for e in errors)

    def test_agent_without_rules(self) -> None:
        agents = [{"agent": "quality", "rules": [_rule()]}, {"agent": "security", "rules": []}]
        errors = RuleRegistry.validate_plugin(RuleRegistry.parse_plugin(_plugin(agents=agents)))
        assert errors == ["agent 'security' has no rules"]

    def test_missing_detection(self) -> None:
        errors = RuleRegistry.validate_plugin(RuleRegistry.parse_plugin(_plugin(detection=[])))
        assert "plugin has no detection signals" in errors


class TestQueries:
    def test_builtins_loaded(self, registry: RuleRegistry) -> None:
        names = [p.name for p in registry.list_plugins()]
        assert names == ["optimizely-cms", "sitecore-classic", "sitecore-xmcloud", "umbraco"]

    def test_unknown_plugin(self, registry: RuleRegistry) -> None:
        with pytest.raises(UnknownPluginError) as exc_info:
            registry.get_plugin("drupal")
        assert "Unknown plugin 'drupal'" in str(exc_info.value)
        assert "umbraco" in str(exc_info.value)

    def test_select_all_agents(self, registry: RuleRegistry) -> None:
        agents = registry.select_agents("umbraco")
        assert [a.name for a in agents] == list(registry.get_plugin("umbraco").agents)

    def test_select_one_agent(self, registry: RuleRegistry) -> None:
        agents = registry.select_agents("umbraco", "security")
        assert [a.name for a in agents] == ["security"]

    def test_select_unknown_agent(self, registry: RuleRegistry) -> None:
        with pytest.raises(UnknownAgentError) as exc_info:
            registry.select_agents("umbraco", "helix")
        assert "Available: all, " in str(exc_info.value)

    def test_security_agents(self, registry: RuleRegistry) -> None:
        for plugin in registry.list_plugins():
            agents = registry.security_agents(plugin.name)
            assert agents
            assert all(a.category == "security" for a in agents)

    def test_sort_rules_by_severity_then_code(self) -> None:
        rules = [
            Rule(code="B-002", title="b", severity="info", pattern="x", files=("*",)),
            Rule(code="A-001", title="a", severity="critical", pattern="x", files=("*",)),
            Rule(code="A-002", title="a", severity="info", pattern="x", files=("*",)),
        ]
        assert [r.code for r in RuleRegistry.sort_rules(rules)] == ["A-001", "A-002", "B-002"]


class TestDisableRules:
    def test_disable_everywhere(self) -> None:
        registry = load_registry(disabled_rules=["QUAL-002"])
        for plugin in registry.list_plugins():
            assert plugin.find_rule("QUAL-002") is None

    def test_disable_one_plugin(self) -> None:
        registry = load_registry(disabled_rules=["umbraco:SEC-004"])
        assert registry.get_plugin("umbraco").find_rule("SEC-004") is None
        assert registry.get_plugin("sitecore-classic").find_rule("SEC-004") is not None

    def test_returns_count(self, registry: RuleRegistry) -> None:
        assert registry.disable_rules(["NOPE-001"]) == 0
        assert registry.disable_rules(["umbraco:UMB-001"]) == 1


class TestCustomRules:
    def _write(self, cmsaudit_dir: Path, name: str, content: str) -> None:
        rules_dir = cmsaudit_dir / "rules"
        rules_dir.mkdir(parents=True, exist_ok=True)
        (rules_dir / name).write_text(content)

    def test_custom_rule_added(self, tmp_path: Path) -> None:
        self._write(
            tmp_path,
            "sleep.toml",
            'plugin = "umbraco"\nagent = "quality"\n\n[rule]\n'
            'code = "CUST-001"\ntitle = "Thread.Sleep"\nseverity = "warning"\n'
            "pattern = 'Thread\\.Sleep\\('\nfiles = [\"**/*.cs\"]\n",
        )
        registry = load_registry(tmp_path)
        rule = registry.get_plugin("umbraco").find_rule("CUST-001")
        assert rule is not None
        assert rule.agent == "quality"

    def test_custom_rule_overrides_builtin_code(self, tmp_path: Path) -> None:
        self._write(
            tmp_path,
            "override.toml",
            'plugin = "umbraco"\nagent = "security"\n\n[rule]\n'
            'code = "SEC-004"\ntitle = "HTTPS off"\nseverity = "critical"\n'
            "pattern = 'UseHttps'\nfiles = [\"**/appsettings.json\"]\n",
        )
        registry = load_registry(tmp_path)
        plugin = registry.get_plugin("umbraco")
        matches = [r for r in plugin.rules if r.code == "SEC-004"]
        assert len(matches) == 1
        assert matches[0].severity == "critical"

    def test_invalid_custom_rule_skipped(self, tmp_path: Path) -> None:
        self._write(tmp_path, "broken.toml", "this is not toml = = =")
        self._write(tmp_path, "noagent.toml", 'plugin = "umbraco"\n[rule]\ncode = "CUST-002"\n')
        self._write(tmp_path, "badplugin.toml", 'plugin = "drupal"\nagent = "quality"\n[rule]\ncode = "CUST-003"\ntitle = "t"\nseverity = "info"\npattern = "x"\nfiles = ["*"]\n')
        registry = load_registry(tmp_path)
        assert registry.get_plugin("umbraco").find_rule("CUST-002") is None
        assert len(registry.list_plugins()) == 4

    def test_list_files_skips_examples(self, tmp_path: Path) -> None:
        rules_dir = tmp_path / "rules"
        rules_dir.mkdir()
        (rules_dir / "b.toml").write_text("")
        (rules_dir / "a.toml").write_text("")
        (rules_dir / "example.toml.example").write_text("")
        assert [p.name for p in list_custom_rule_files(rules_dir)] == ["a.toml", "b.toml"]

    def test_list_files_missing_dir(self, tmp_path: Path) -> None:
        assert list_custom_rule_files(tmp_path / "nope") == []

    def test_load_is_idempotent(self) -> None:
        registry = RuleRegistry()
        registry.load()
        registry.load(disabled_rules=["QUAL-001"])
        assert registry.get_plugin("umbraco").find_rule("QUAL-001") is not None
