"""Rule registry -- loading, caching, and validation of plugin rule packs.

A plugin bundles the agents for one CMS platform. Each agent is a table of
rules pairing an issue code and a severity with a regex heuristic and the
file globs it applies to. Built-in plugins live in rules_data; projects can
add or override rules with TOML files in .cmsaudit/rules/.
"""

from __future__ import annotations

import logging
import re
import tomllib
from dataclasses import dataclass, field
from dataclasses import replace as _dc_replace
from pathlib import Path
from typing import Any, Literal

from cmsaudit.core import RULES_DIRNAME, Severity, parse_severity, severity_rank

logger = logging.getLogger(__name__)

_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9-]{0,63}$")
_CODE_PATTERN = re.compile(r"^[A-Z][A-Z0-9]{1,9}-\d{3}$")
_VALID_MODES: frozenset[str] = frozenset({"match", "absent"})
_VALID_CATEGORIES: frozenset[str] = frozenset({"architecture", "security", "performance", "quality", "platform"})

RuleMode = Literal["match", "absent"]
AgentCategory = Literal["architecture", "security", "performance", "quality", "platform"]

# ---------------------------------------------------------------------------
# Frozen dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Rule:
    """One detection heuristic: an issue code, a severity and a regex over a set of files."""

    code: str
    title: str
    severity: Severity
    pattern: str
    files: tuple[str, ...]
    agent: str = ""
    mode: RuleMode = "match"
    description: str = ""
    recommendation: str = ""
    exclude_files: tuple[str, ...] = ()
    ignore_case: bool = False

    def __post_init__(self) -> None:
        if not _CODE_PATTERN.match(self.code):
            msg = f"Invalid issue code '{self.code}': must look like ARCH-001"
            raise ValueError(msg)
        if self.mode not in _VALID_MODES:
            msg = f"Rule {self.code}: invalid mode '{self.mode}' (must be one of {sorted(_VALID_MODES)})"
            raise ValueError(msg)
        if not self.files:
            msg = f"Rule {self.code}: 'files' must list at least one glob"
            raise ValueError(msg)

    @property
    def regex(self) -> re.Pattern[str]:
        return compile_pattern(self.pattern, self.ignore_case)


@dataclass(frozen=True)
class Agent:
    """A category of rules run together, e.g. the security agent of a plugin."""

    name: str
    display_name: str
    category: AgentCategory
    description: str
    rules: tuple[Rule, ...]


@dataclass(frozen=True)
class DetectionSignal:
    """Evidence that a codebase belongs to a platform."""

    files: str
    weight: int
    pattern: str | None = None
    version_pattern: str | None = None
    label: str = ""


@dataclass(frozen=True)
class Plugin:
    """All agents, detection signals and guidance for one CMS platform."""

    name: str
    version: str
    display_name: str
    description: str
    platform: str
    agents: dict[str, Agent]
    detection: tuple[DetectionSignal, ...]
    ignore_patterns: tuple[str, ...] = ()
    guidance: tuple[str, ...] = ()
    skills: tuple[str, ...] = field(default_factory=tuple)

    @property
    def rules(self) -> list[Rule]:
        return [rule for agent in self.agents.values() for rule in agent.rules]

    def find_rule(self, code: str) -> Rule | None:
        for rule in self.rules:
            if rule.code == code:
                return rule
        return None


# ---------------------------------------------------------------------------
# Custom exceptions
# ---------------------------------------------------------------------------


class UnknownPluginError(KeyError):
    """Raised when a plugin name is not registered."""

    def __init__(self, name: str, available: list[str]) -> None:
        self.name = name
        self.available = available
        super().__init__(name)

    def __str__(self) -> str:
        return f"Unknown plugin '{self.name}'. Available: {', '.join(self.available) or '(none)'}"


class UnknownAgentError(KeyError):
    """Raised when an agent name is not part of the selected plugin."""

    def __init__(self, plugin: str, name: str, available: list[str]) -> None:
        self.plugin = plugin
        self.name = name
        self.available = available
        super().__init__(name)

    def __str__(self) -> str:
        return f"Unknown agent '{self.name}' for plugin '{self.plugin}'. Available: all, {', '.join(self.available)}"


_regex_cache: dict[tuple[str, bool], re.Pattern[str]] = {}


def compile_pattern(pattern: str, ignore_case: bool = False) -> re.Pattern[str]:
    key = (pattern, ignore_case)
    compiled = _regex_cache.get(key)
    if compiled is None:
        flags = re.MULTILINE | (re.IGNORECASE if ignore_case else 0)
        compiled = re.compile(pattern, flags)
        _regex_cache[key] = compiled
    return compiled


def _str_tuple(raw: Any, what: str) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        return (raw,)
    if not isinstance(raw, list) or not all(isinstance(v, str) for v in raw):
        msg = f"{what} must be a list of strings"
        raise ValueError(msg)
    return tuple(raw)


# ---------------------------------------------------------------------------
# RuleRegistry
# ---------------------------------------------------------------------------


class RuleRegistry:
    """Loads, caches, and queries plugin rule packs.

    Plugins are loaded once per instance. Custom rules from the project
    override built-in rules that share their issue code.
    """

    MAX_RULES_PER_AGENT = 200
    MAX_AGENTS = 30

    def __init__(self) -> None:
        self._plugins: dict[str, Plugin] = {}
        self._loaded = False

    # -- Parsing (from dict/TOML) -------------------------------------------

    @staticmethod
    def parse_rule(raw: dict[str, Any], *, agent: str = "") -> Rule:
        """Parse a rule from a JSON-compatible dict.

        Raises:
            ValueError: If a field is invalid or the pattern does not compile.
            KeyError: If a required key is missing.
        """
        if not isinstance(raw, dict):
            msg = f"Rule must be a dict, got {type(raw).__name__}"
            raise ValueError(msg)
        code = raw["code"]
        pattern = raw["pattern"]
        if not isinstance(pattern, str) or not pattern:
            msg = f"Rule {code}: 'pattern' must be a non-empty string"
            raise ValueError(msg)
        ignore_case = bool(raw.get("ignore_case", False))
        try:
            compile_pattern(pattern, ignore_case)
        except re.error as exc:
            msg = f"Rule {code}: pattern does not compile: {exc}"
            raise ValueError(msg) from exc
        return Rule(
            code=code,
            title=raw["title"],
            severity=parse_severity(raw["severity"]),
            pattern=pattern,
            files=_str_tuple(raw.get("files"), f"Rule {code}: 'files'"),
            agent=raw.get("agent", agent),
            mode=raw.get("mode", "match"),
            description=raw.get("description", ""),
            recommendation=raw.get("recommendation", ""),
            exclude_files=_str_tuple(raw.get("exclude_files"), f"Rule {code}: 'exclude_files'"),
            ignore_case=ignore_case,
        )

    @classmethod
    def parse_agent(cls, raw: dict[str, Any]) -> Agent:
        name = raw["agent"]
        if not isinstance(name, str) or not _NAME_PATTERN.match(name):
            msg = f"Invalid agent name '{name}': must be kebab-case"
            raise ValueError(msg)
        category = raw.get("category", name)
        if category not in _VALID_CATEGORIES:
            msg = f"Agent '{name}': invalid category '{category}' (must be one of {sorted(_VALID_CATEGORIES)})"
            raise ValueError(msg)
        raw_rules = raw.get("rules")
        if not isinstance(raw_rules, list):
            msg = f"Agent '{name}': 'rules' must be a list, got {type(raw_rules).__name__}"
            raise ValueError(msg)
        if len(raw_rules) > cls.MAX_RULES_PER_AGENT:
            msg = f"Agent '{name}' has {len(raw_rules)} rules (max {cls.MAX_RULES_PER_AGENT})"
            raise ValueError(msg)
        rules = tuple(cls.parse_rule(r, agent=name) for r in raw_rules)
        return Agent(
            name=name,
            display_name=raw.get("display_name", name.replace("-", " ").title()),
            category=category,
            description=raw.get("description", ""),
            rules=rules,
        )

    @classmethod
    def parse_plugin(cls, raw: dict[str, Any]) -> Plugin:
        """Parse a plugin pack dict as laid out in rules_data."""
        name = raw["plugin"]
        if not isinstance(name, str) or not _NAME_PATTERN.match(name):
            msg = f"Invalid plugin name '{name}': must be kebab-case"
            raise ValueError(msg)
        raw_agents = raw.get("agents")
        if not isinstance(raw_agents, list):
            msg = f"Plugin '{name}': 'agents' must be a list"
            raise ValueError(msg)
        if len(raw_agents) > cls.MAX_AGENTS:
            msg = f"Plugin '{name}' has {len(raw_agents)} agents (max {cls.MAX_AGENTS})"
            raise ValueError(msg)
        agents: dict[str, Agent] = {}
        for raw_agent in raw_agents:
            agent = cls.parse_agent(raw_agent)
            if agent.name in agents:
                msg = f"Plugin '{name}': duplicate agent '{agent.name}'"
                raise ValueError(msg)
            agents[agent.name] = agent

        detection: list[DetectionSignal] = []
        for i, sig in enumerate(raw.get("detection", [])):
            if not isinstance(sig, dict) or "files" not in sig:
                msg = f"Plugin '{name}': detection signal at index {i} must be a dict with 'files'"
                raise ValueError(msg)
            for key in ("pattern", "version_pattern"):
                if sig.get(key) is not None:
                    try:
                        compile_pattern(sig[key], True)
                    except re.error as exc:
                        msg = f"Plugin '{name}': detection {key} at index {i} does not compile: {exc}"
                        raise ValueError(msg) from exc
            detection.append(
                DetectionSignal(
                    files=sig["files"],
                    weight=int(sig.get("weight", 1)),
                    pattern=sig.get("pattern"),
                    version_pattern=sig.get("version_pattern"),
                    label=sig.get("label", ""),
                )
            )

        return Plugin(
            name=name,
            version=raw.get("version", "1.0.0"),
            display_name=raw.get("display_name", name),
            description=raw.get("description", ""),
            platform=raw.get("platform", name),
            agents=agents,
            detection=tuple(detection),
            ignore_patterns=_str_tuple(raw.get("ignore_patterns"), f"Plugin '{name}': 'ignore_patterns'"),
            guidance=_str_tuple(raw.get("guidance"), f"Plugin '{name}': 'guidance'"),
            skills=_str_tuple(raw.get("skills"), f"Plugin '{name}': 'skills'"),
        )

    @staticmethod
    def validate_plugin(plugin: Plugin) -> list[str]:
        """Validate a Plugin for internal consistency.

        Returns:
            List of error messages. Empty list means valid.
        """
        errors: list[str] = []
        seen: set[str] = set()
        for agent in plugin.agents.values():
            if not agent.rules:
                errors.append(f"agent '{agent.name}' has no rules")
            for rule in agent.rules:
                if rule.code in seen:
                    errors.append(f"duplicate issue code '{rule.code}'")
                seen.add(rule.code)
                if rule.agent != agent.name:
                    errors.append(f"rule {rule.code} is tagged with agent '{rule.agent}' but listed under '{agent.name}'")
        if not plugin.detection:
            errors.append("plugin has no detection signals")
        return errors

    # -- Registration -------------------------------------------------------

    def register(self, plugin: Plugin) -> None:
        logger.debug("Registering plugin: %s (version=%s, %d agents)", plugin.name, plugin.version, len(plugin.agents))
        self._plugins[plugin.name] = plugin

    def _load_plugin_data(self, raw: dict[str, Any]) -> None:
        plugin = self.parse_plugin(raw)
        errors = self.validate_plugin(plugin)
        if errors:
            logger.warning("Skipping invalid plugin %s: %s", plugin.name, errors)
            return
        self.register(plugin)

    def add_rule(self, plugin_name: str, agent_name: str, rule: Rule) -> None:
        """Add *rule* to an agent, replacing any rule of the plugin with the same code."""
        plugin = self.get_plugin(plugin_name)
        if agent_name not in plugin.agents:
            raise UnknownAgentError(plugin_name, agent_name, list(plugin.agents))
        if rule.agent != agent_name:
            rule = _dc_replace(rule, agent=agent_name)
        agents: dict[str, Agent] = {}
        for name, agent in plugin.agents.items():
            kept = tuple(r for r in agent.rules if r.code != rule.code)
            if name == agent_name:
                kept = (*kept, rule)
            agents[name] = _dc_replace(agent, rules=kept)
        self._plugins[plugin_name] = _dc_replace(plugin, agents=agents)

    def disable_rules(self, entries: list[str]) -> int:
        """Drop rules by ``CODE`` (every plugin) or ``plugin:CODE``. Returns how many were removed."""
        removed = 0
        for plugin_name, plugin in list(self._plugins.items()):
            codes = {e for e in entries if ":" not in e}
            codes |= {e.split(":", 1)[1] for e in entries if e.startswith(f"{plugin_name}:")}
            if not codes:
                continue
            agents: dict[str, Agent] = {}
            for name, agent in plugin.agents.items():
                kept = tuple(r for r in agent.rules if r.code not in codes)
                removed += len(agent.rules) - len(kept)
                agents[name] = _dc_replace(agent, rules=kept)
            self._plugins[plugin_name] = _dc_replace(plugin, agents=agents)
        return removed

    # -- Queries ------------------------------------------------------------

    def get_plugin(self, name: str) -> Plugin:
        plugin = self._plugins.get(name)
        if plugin is None:
            raise UnknownPluginError(name, sorted(self._plugins))
        return plugin

    def has_plugin(self, name: str) -> bool:
        return name in self._plugins

    def list_plugins(self) -> list[Plugin]:
        return [self._plugins[name] for name in sorted(self._plugins)]

    def select_agents(self, plugin_name: str, agent: str = "all") -> list[Agent]:
        """Agents to run for ``analyze [agent|all]``. Agents without rules are skipped."""
        plugin = self.get_plugin(plugin_name)
        if agent == "all":
            return [a for a in plugin.agents.values() if a.rules]
        if agent not in plugin.agents:
            raise UnknownAgentError(plugin_name, agent, list(plugin.agents))
        return [plugin.agents[agent]]

    def security_agents(self, plugin_name: str) -> list[Agent]:
        plugin = self.get_plugin(plugin_name)
        return [a for a in plugin.agents.values() if a.category == "security" and a.rules]

    @staticmethod
    def sort_rules(rules: list[Rule]) -> list[Rule]:
        return sorted(rules, key=lambda r: (severity_rank(r.severity), r.code))

    # -- Loading ------------------------------------------------------------

    def load(self, cmsaudit_dir: Path | None = None, *, disabled_rules: list[str] | None = None) -> None:
        """Load plugins from all layers.

        Layer 1: Built-in plugins from rules_data.BUILT_IN_PLUGINS
        Layer 2: Project custom rules from .cmsaudit/rules/*.toml
        Layer 3: Rules disabled in config.json

        Idempotent: second call is a no-op.
        """
        if self._loaded:
            return

        from cmsaudit.rules_data import BUILT_IN_PLUGINS

        for plugin_name, plugin_data in BUILT_IN_PLUGINS.items():
            try:
                self._load_plugin_data(plugin_data)
            except (ValueError, KeyError, TypeError) as exc:
                logger.warning("Skipping unparseable built-in plugin %s: %s", plugin_name, exc)

        if cmsaudit_dir is not None:
            rules_dir = cmsaudit_dir / RULES_DIRNAME
            for path in list_custom_rule_files(rules_dir):
                self._load_custom_rule(path)

        if disabled_rules:
            removed = self.disable_rules(disabled_rules)
            logger.info("Disabled %d rule(s) from config", removed)

        self._loaded = True
        logger.info("Rule loading complete: %d plugins, %d rules", len(self._plugins), sum(len(p.rules) for p in self._plugins.values()))

    def _load_custom_rule(self, path: Path) -> None:
        try:
            data = tomllib.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError):
            logger.warning("Failed to read custom rule: %s", path, exc_info=True)
            return
        raw_rule = data.get("rule")
        plugin_name = data.get("plugin")
        agent_name = data.get("agent")
        if not isinstance(raw_rule, dict) or not isinstance(plugin_name, str) or not isinstance(agent_name, str):
            logger.warning("Invalid custom rule (needs plugin, agent and a [rule] table): %s", path)
            return
        try:
            rule = self.parse_rule(raw_rule, agent=agent_name)
            self.add_rule(plugin_name, agent_name, rule)
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Skipping invalid custom rule %s: %s", path.name, exc)
            return
        logger.info("Loaded custom rule %s for %s/%s", rule.code, plugin_name, agent_name)


def list_custom_rule_files(rules_dir: Path) -> list[Path]:
    """Custom rule TOML files, sorted. Skips *.toml.example. Empty when the dir is missing."""
    if not rules_dir.is_dir():
        return []
    return [p for p in sorted(rules_dir.iterdir()) if p.suffix == ".toml" and p.is_file()]


def load_registry(cmsaudit_dir: Path | None = None, *, disabled_rules: list[str] | None = None) -> RuleRegistry:
    registry = RuleRegistry()
    registry.load(cmsaudit_dir, disabled_rules=disabled_rules)
    return registry
