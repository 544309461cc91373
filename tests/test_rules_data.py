"""Consistency checks for the built-in plugin data."""

from __future__ import annotations

import re

import pytest

from cmsaudit.rules import RuleRegistry
from cmsaudit.rules_data import BUILT_IN_PLUGINS, GENERIC_IGNORE_PATTERNS
from cmsaudit.skills_data import BUILT_IN_SKILLS, get_skills

PLUGIN_NAMES = sorted(BUILT_IN_PLUGINS)


class TestBuiltInPlugins:
    @pytest.mark.parametrize("name", PLUGIN_NAMES)
    def test_parses_and_validates(self, name: str) -> None:
        plugin = RuleRegistry.parse_plugin(BUILT_IN_PLUGINS[name])
        assert RuleRegistry.validate_plugin(plugin) == []

    @pytest.mark.parametrize("name", PLUGIN_NAMES)
    def test_has_core_agents(self, name: str) -> None:
        plugin = RuleRegistry.parse_plugin(BUILT_IN_PLUGINS[name])
        for agent in ("architecture", "security", "performance", "quality"):
            assert agent in plugin.agents

    @pytest.mark.parametrize("name", PLUGIN_NAMES)
    def test_rules_are_documented(self, name: str) -> None:
        plugin = RuleRegistry.parse_plugin(BUILT_IN_PLUGINS[name])
        for rule in plugin.rules:
            assert rule.title
            assert rule.recommendation, rule.code

    @pytest.mark.parametrize("name", PLUGIN_NAMES)
    def test_skills_exist(self, name: str) -> None:
        plugin = RuleRegistry.parse_plugin(BUILT_IN_PLUGINS[name])
        assert plugin.skills
        for skill in plugin.skills:
            assert skill in BUILT_IN_SKILLS

    @pytest.mark.parametrize("name", PLUGIN_NAMES)
    def test_guidance_and_ignore_patterns(self, name: str) -> None:
        plugin = RuleRegistry.parse_plugin(BUILT_IN_PLUGINS[name])
        assert plugin.guidance
        assert plugin.ignore_patterns

    def test_plugin_keys_match_names(self) -> None:
        for key, raw in BUILT_IN_PLUGINS.items():
            assert raw["plugin"] == key

    def test_generic_ignore_keeps_workspace_packages(self) -> None:
        assert "packages/" not in GENERIC_IGNORE_PATTERNS
        assert "node_modules/" in GENERIC_IGNORE_PATTERNS


class TestRulePatterns:
    """Spot checks that key heuristics hit what they describe and nothing more."""

    def _rule(self, plugin: str, code: str):  # type: ignore[no-untyped-def]
        rule = RuleRegistry.parse_plugin(BUILT_IN_PLUGINS[plugin]).find_rule(code)
        assert rule is not None
        return rule

    def test_sitecore_password_ignores_tokens(self) -> None:
        regex = self._rule("sitecore-classic", "SEC-001").regex
        assert regex.search('<add name="core" connectionString="user id=sa;password=P@ss;" />')
        assert not regex.search('connectionString="user id=sa;password=$(SqlPassword);"')
        assert not regex.search('connectionString="user id=sa;password=#{SqlPassword};"')

    def test_sitecore_empty_catch(self) -> None:
        regex = self._rule("sitecore-classic", "QUAL-001").regex
        assert regex.search("catch (Exception) { }")
        assert regex.search("catch\n{\n}")
        assert not regex.search("catch (Exception ex) { Log.Error(ex); }")

    def test_optimizely_guid_lookahead_spans_lines(self) -> None:
        regex = self._rule("optimizely-cms", "ARCH-002").regex
        assert regex.search('[ContentType(DisplayName = "Start")]')
        assert not regex.search('[ContentType(\n    DisplayName = "Start",\n    GUID = "19671657-b684-4d95-a61f-8dd4fe60d559")]')

    def test_optimizely_non_virtual_property(self) -> None:
        regex = self._rule("optimizely-cms", "CMOD-001").regex
        assert regex.search("    public string Heading { get; set; }")
        assert regex.search("    public IList<ContentReference> Items { get; set; }")
        assert not regex.search("    public virtual string Heading { get; set; }")
        assert not regex.search("    public override string Name { get; set; }")
        assert not regex.search("public class ArticlePage : PageData\n{\n    public virtual string A { get; set; }")

    def test_umbraco_legacy_namespace(self) -> None:
        regex = self._rule("umbraco", "UMB-001").regex
        assert regex.search("using Umbraco.Web.Mvc;")
        assert regex.search("using Umbraco.Web;")
        assert not regex.search("using Umbraco.Cms.Web.Common;")

    def test_xmcloud_public_secret(self) -> None:
        regex = self._rule("sitecore-xmcloud", "SEC-001").regex
        assert regex.search("NEXT_PUBLIC_SITECORE_API_KEY=abc")
        assert not regex.search("SITECORE_API_KEY=abc")

    def test_xmcloud_field_value_rendering(self) -> None:
        regex = self._rule("sitecore-xmcloud", "QUAL-001").regex
        assert regex.search("<h1>{props.fields.heading.value}</h1>")
        assert regex.search("<h1>{fields?.heading?.value}</h1>")
        assert not regex.search("<Text field={props.fields.heading} />")

    def test_all_codes_match_issue_code_format(self) -> None:
        pattern = re.compile(r"^[A-Z][A-Z0-9]{1,9}-\d{3}$")
        for name in PLUGIN_NAMES:
            for rule in RuleRegistry.parse_plugin(BUILT_IN_PLUGINS[name]).rules:
                assert pattern.match(rule.code)


class TestSkills:
    def test_get_skills_in_order(self) -> None:
        skills = get_skills(["umbraco-view", "umbraco-composer"])
        assert [s["name"] for s in skills] == ["umbraco-view", "umbraco-composer"]

    def test_unknown_skill_skipped(self) -> None:
        assert get_skills(["nope"]) == []

    def test_skill_bodies_have_code(self) -> None:
        for skill in BUILT_IN_SKILLS.values():
            assert "```" in skill["body"]
