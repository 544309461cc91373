"""Plugin and marketplace manifests.

A plugin manifest describes one CMS plugin (its commands, agents and skills)
as JSON; a marketplace manifest lists every plugin a registry provides.
Validators return a list of error strings, empty when the manifest is valid.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from cmsaudit.rules import Plugin, RuleRegistry

PLUGIN_COMMANDS: tuple[str, ...] = ("analyze", "enhance", "security-scan", "setup")
DEFAULT_MARKETPLACE_NAME = "cmsaudit-plugins"
DEFAULT_OWNER = "cmsaudit"

_NAME_RE = re.compile(r"^[a-z][a-z0-9-]*$")
_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+")

_PLUGIN_REQUIRED: dict[str, type] = {
    "name": str,
    "version": str,
    "description": str,
    "commands": list,
    "agents": list,
    "skills": list,
}


def build_plugin_manifest(plugin: Plugin) -> dict[str, Any]:
    return {
        "name": plugin.name,
        "version": plugin.version,
        "description": plugin.description,
        "commands": list(PLUGIN_COMMANDS),
        "agents": list(plugin.agents),
        "skills": list(plugin.skills),
    }


def build_marketplace(registry: RuleRegistry, owner: str = DEFAULT_OWNER) -> dict[str, Any]:
    return {
        "name": DEFAULT_MARKETPLACE_NAME,
        "owner": {"name": owner},
        "plugins": [
            {
                "name": p.name,
                "version": p.version,
                "description": p.description,
                "source": f"./plugins/{p.name}",
            }
            for p in registry.list_plugins()
        ],
    }


def _check_name(value: Any, where: str) -> list[str]:
    if isinstance(value, str) and not _NAME_RE.match(value):
        return [f"{where} must be kebab-case: {value!r}"]
    return []


def _check_version(value: Any, where: str) -> list[str]:
    if isinstance(value, str) and not _VERSION_RE.match(value):
        return [f"{where} must be semver format: {value!r}"]
    return []


def _check_string_list(data: dict[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if not isinstance(value, list):
        return []
    errors: list[str] = []
    if not all(isinstance(v, str) and v for v in value):
        errors.append(f"'{key}' must contain non-empty strings")
        return errors
    dupes = sorted({v for v in value if value.count(v) > 1})
    if dupes:
        errors.append(f"Duplicate entries in '{key}': {', '.join(dupes)}")
    return errors


def validate_plugin_manifest(data: Any) -> list[str]:
    if not isinstance(data, dict):
        return ["Plugin manifest must be a JSON object"]
    errors: list[str] = []
    for key, expected in _PLUGIN_REQUIRED.items():
        if key not in data:
            errors.append(f"Missing required field '{key}'")
        elif not isinstance(data[key], expected):
            errors.append(f"Field '{key}' must be of type {expected.__name__}")
    errors.extend(_check_name(data.get("name"), "Plugin name"))
    errors.extend(_check_version(data.get("version"), "Version"))
    for key in ("commands", "agents", "skills"):
        errors.extend(_check_string_list(data, key))
    commands = data.get("commands")
    if isinstance(commands, list):
        unknown = [c for c in commands if isinstance(c, str) and c not in PLUGIN_COMMANDS]
        if unknown:
            errors.append(f"Unknown commands: {', '.join(unknown)} (known: {', '.join(PLUGIN_COMMANDS)})")
    return errors


def validate_marketplace(data: Any) -> list[str]:
    if not isinstance(data, dict):
        return ["Marketplace manifest must be a JSON object"]
    errors: list[str] = []
    if not isinstance(data.get("name"), str):
        errors.append("Missing required field 'name'")
    else:
        errors.extend(_check_name(data["name"], "Marketplace name"))
    owner = data.get("owner")
    if not isinstance(owner, dict) or not isinstance(owner.get("name"), str):
        errors.append("Field 'owner' must be an object with a 'name'")
    plugins = data.get("plugins")
    if not isinstance(plugins, list):
        errors.append("Field 'plugins' must be a list")
        return errors
    seen: set[str] = set()
    for i, entry in enumerate(plugins):
        where = f"plugins[{i}]"
        if not isinstance(entry, dict):
            errors.append(f"{where} must be an object")
            continue
        for key in ("name", "source"):
            if not isinstance(entry.get(key), str):
                errors.append(f"{where} is missing '{key}'")
        name = entry.get("name")
        errors.extend(_check_name(name, f"{where} name"))
        errors.extend(_check_version(entry.get("version"), f"{where} version"))
        if isinstance(name, str):
            if name in seen:
                errors.append(f"Duplicate plugin '{name}'")
            seen.add(name)
    return errors


def is_marketplace(data: Any) -> bool:
    return isinstance(data, dict) and "plugins" in data


def load_manifest(path: Path) -> dict[str, Any]:
    """Read a manifest file. Raises ValueError for unreadable or non-object JSON."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        msg = f"Invalid schema: {path} is not valid JSON ({exc})"
        raise ValueError(msg) from exc
    if not isinstance(data, dict):
        msg = f"Invalid schema: {path} must contain a JSON object"
        raise ValueError(msg)
    return data


def write_manifest(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
