"""Structural validation of Claude Code and OpenCode plugin directories.

Used after conversion to check that generated output is loadable: JSON
must parse, required fields must be present, and files referenced from
configuration must exist. Unknown hook events and other soft problems are
reported as warnings; only missing or malformed required data is an error.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from plugin_convert.claude_code import HOOKS_PATH, MANIFEST_PATH, MCP_PATH, SETTINGS_PATH
from plugin_convert.common import CLAUDE_HOOK_EVENTS, OPENCODE_HOOK_EVENTS, Transport, is_safe_name
from plugin_convert.open_code import AGENTS_DIR, CONFIG_PATH, PLUGINS_DIR, YAML_CONFIG_PATHS

logger = logging.getLogger(__name__)

CLAUDE_CODE = "claude-code"
OPENCODE = "opencode"
FORMATS = (CLAUDE_CODE, OPENCODE)


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        parts = ["✓ Valid plugin" if self.valid else "✗ Invalid plugin"]
        for e in self.errors:
            parts.append(f"  ✗ {e}")
        for w in self.warnings:
            parts.append(f"  ⚠ {w}")
        return "\n".join(parts)


def detect_plugin_format(path: Path) -> Optional[str]:
    """Guess which format the plugin directory at ``path`` uses.

    Returns:
        ``"claude-code"``, ``"opencode"``, or None when neither layout matches
    """
    path = Path(path)
    if not path.is_dir():
        return None

    if (path / MANIFEST_PATH).is_file():
        return CLAUDE_CODE
    if (path / CONFIG_PATH).is_file() or any((path / p).is_file() for p in YAML_CONFIG_PATHS):
        return OPENCODE

    if (path / ".opencode").is_dir() or (path / "instructions").is_dir():
        return OPENCODE
    if (path / "skills").is_dir() or (path / HOOKS_PATH).is_file() or (path / MCP_PATH).is_file():
        return CLAUDE_CODE
    return None


def validate_plugin(path: Path, format: Optional[str] = None) -> ValidationResult:
    """Validate a plugin directory.

    Args:
        path: Plugin directory
        format: ``"claude-code"`` or ``"opencode"``; detected when omitted

    Returns:
        ValidationResult listing every error and warning found
    """
    path = Path(path)
    if not path.is_dir():
        return ValidationResult(valid=False, errors=[f"Not a directory: {path}"])

    if format is None:
        format = detect_plugin_format(path)
        if format is None:
            return ValidationResult(valid=False, errors=["Could not determine plugin format"])
    elif format not in FORMATS:
        return ValidationResult(valid=False, errors=[f"Unknown plugin format: {format}"])

    result = ValidationResult(valid=True)
    if format == CLAUDE_CODE:
        _validate_claude_code(path, result)
    else:
        _validate_opencode(path, result)

    result.valid = not result.errors
    logger.debug("Validated %s as %s: %d error(s)", path, format, len(result.errors))
    return result


# ── Claude Code ──────────────────────────────────────────────────────


def _validate_claude_code(path: Path, result: ValidationResult) -> None:
    manifest = _load_json(path / MANIFEST_PATH, result)
    if manifest is None:
        if not (path / MANIFEST_PATH).exists():
            result.errors.append(f"Missing {MANIFEST_PATH.as_posix()}")
    else:
        _check_name(manifest, MANIFEST_PATH.as_posix(), result)
        if "version" in manifest and not isinstance(manifest["version"], str):
            result.errors.append(f"{MANIFEST_PATH.as_posix()}: \"version\" must be a string")

    for hooks_file in (HOOKS_PATH, SETTINGS_PATH):
        data = _load_json(path / hooks_file, result)
        if data is not None and "hooks" in data:
            _check_claude_hooks(data["hooks"], hooks_file.as_posix(), result)

    mcp = _load_json(path / MCP_PATH, result)
    if mcp is not None:
        servers = mcp.get("mcpServers", {})
        if not isinstance(servers, dict):
            result.errors.append(".mcp.json: \"mcpServers\" must be an object")
        else:
            for name, server in servers.items():
                if not isinstance(server, dict) or not isinstance(server.get("command"), str):
                    result.errors.append(f'.mcp.json: MCP server "{name}" needs a "command"')

    skills_dir = path / "skills"
    if skills_dir.is_dir():
        for entry in sorted(skills_dir.iterdir()):
            if entry.is_dir() and not (entry / "SKILL.md").is_file():
                result.warnings.append(f"skills/{entry.name} has no SKILL.md")


def _check_claude_hooks(hooks: object, source: str, result: ValidationResult) -> None:
    if not isinstance(hooks, dict):
        result.errors.append(f'{source}: "hooks" must be an object keyed by event')
        return

    for event, matchers in hooks.items():
        if event not in CLAUDE_HOOK_EVENTS:
            result.warnings.append(f'{source}: unknown hook event "{event}"')
        if not isinstance(matchers, list):
            result.errors.append(f'{source}: hooks for "{event}" must be a list')
            continue
        for matcher in matchers:
            actions = matcher.get("hooks") if isinstance(matcher, dict) else None
            if not isinstance(actions, list):
                result.errors.append(f'{source}: matcher for "{event}" needs a "hooks" list')
                continue
            for action in actions:
                if not isinstance(action, dict) or not isinstance(action.get("command"), str):
                    result.errors.append(f'{source}: hook for "{event}" needs a "command"')


# ── OpenCode ─────────────────────────────────────────────────────────


def _validate_opencode(path: Path, result: ValidationResult) -> None:
    config = _load_opencode_config(path, result)
    if config is None:
        return

    _check_name(config, "opencode config", result)

    hooks = config.get("hooks", [])
    if not isinstance(hooks, list):
        result.errors.append('opencode config: "hooks" must be an array')
        hooks = []
    for hook in hooks:
        event = hook.get("event") if isinstance(hook, dict) else None
        if not isinstance(event, str):
            result.errors.append("opencode config: hook entry needs an \"event\"")
            continue
        if event not in OPENCODE_HOOK_EVENTS:
            result.warnings.append(f'opencode config: unknown hook event "{event}"')
        if not any(isinstance(hook.get(k), str) for k in ("command", "script", "handler")):
            result.errors.append(f'opencode config: hook "{event}" needs a command, script or handler')

    servers = config.get("mcpServers", {})
    if not isinstance(servers, dict):
        result.errors.append('opencode config: "mcpServers" must be an object')
        servers = {}
    for name, server in servers.items():
        if not isinstance(server, dict):
            result.errors.append(f'opencode config: MCP server "{name}" must be an object')
            continue
        transport = str(server.get("transport") or Transport.STDIO.value)
        if transport not in {t.value for t in Transport}:
            result.errors.append(f'opencode config: MCP server "{name}" has unknown transport "{transport}"')
        elif transport == Transport.STDIO.value and not server.get("command"):
            result.errors.append(f'opencode config: MCP server "{name}" needs a "command"')
        elif transport != Transport.STDIO.value and not server.get("url"):
            result.warnings.append(f'opencode config: MCP server "{name}" uses {transport} without a "url"')

    for entry in _config_list(config, "commands", result):
        if not isinstance(entry, dict) or not entry.get("name"):
            result.errors.append("opencode config: command entry needs a \"name\"")
            continue
        handler = str(entry.get("handler") or f"commands/{entry['name']}.ts")
        if not (path / handler).is_file():
            result.warnings.append(f'Command "{entry["name"]}" handler not found: {handler}')

    for entry in _config_list(config, "instructions", result):
        if isinstance(entry, dict) and entry.get("path") and not (path / str(entry["path"])).is_file():
            result.warnings.append(f'Instruction "{entry.get("name")}" not found: {entry["path"]}')

    agents = config.get("agents") or {}
    if not isinstance(agents, dict):
        result.errors.append('opencode config: "agents" must be an object keyed by name')
        agents = {}
    for name in agents:
        if not is_safe_name(str(name)):
            result.errors.append(f'opencode config: agent name "{name}" is not a valid file name')
        elif not (path / AGENTS_DIR / f"{name}.md").is_file():
            result.warnings.append(f'Agent "{name}" has no instructions file in {AGENTS_DIR.as_posix()}')

    plugins_dir = path / PLUGINS_DIR
    if plugins_dir.exists() and not plugins_dir.is_dir():
        result.errors.append(f"{PLUGINS_DIR.as_posix()} must be a directory")


def _load_opencode_config(path: Path, result: ValidationResult) -> Optional[dict]:
    if (path / CONFIG_PATH).is_file():
        return _load_json(path / CONFIG_PATH, result)

    for candidate in YAML_CONFIG_PATHS:
        config_path = path / candidate
        if not config_path.is_file():
            continue
        try:
            data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            result.errors.append(f"{candidate}: {e}")
            return None
        if not isinstance(data, dict):
            result.errors.append(f"{candidate}: expected a mapping")
            return None
        return data

    result.errors.append(f"Missing {CONFIG_PATH}")
    return None


# ── Helpers ──────────────────────────────────────────────────────────


def _load_json(path: Path, result: ValidationResult) -> Optional[dict]:
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        result.errors.append(f"{path.name}: invalid JSON ({e})")
        return None
    if not isinstance(data, dict):
        result.errors.append(f"{path.name}: expected a JSON object")
        return None
    return data


def _config_list(config: dict, key: str, result: ValidationResult) -> list:
    value = config.get(key) or []
    if isinstance(value, list):
        return value
    result.errors.append(f'opencode config: "{key}" must be an array')
    return []


def _check_name(data: dict, source: str, result: ValidationResult) -> None:
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        result.errors.append(f'{source}: "name" is required')
