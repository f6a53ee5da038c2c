"""Parse and serialize the Claude Code plugin format."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from plugin_convert.common import (
    CommandAction,
    CommandParameter,
    ConversionWarning,
    checked_name,
    compact,
    info,
    list_field,
    load_json_file,
    read_text_file,
    string_map,
    warning,
    write_json,
)
from plugin_convert.frontmatter import parse_frontmatter, render_command_frontmatter, split_frontmatter

logger = logging.getLogger(__name__)

MANIFEST_PATH = Path(".claude-plugin") / "plugin.json"
HOOKS_PATH = Path("hooks") / "hooks.json"
MCP_PATH = Path(".mcp.json")
SETTINGS_PATH = Path("settings.json")

# Sources whose fingerprints drive sync-mode change detection.
COMPONENT_PATHS = (".claude-plugin", "skills", "commands", "agents", "hooks", ".mcp.json", "settings.json")

_MANIFEST_KEYS = ("name", "version", "description", "author")


@dataclass
class ClaudeManifest:
    """Parsed .claude-plugin/plugin.json manifest."""

    name: str
    version: Optional[str] = None
    description: Optional[str] = None
    author: Optional[Union[dict, str]] = None
    metadata: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict, fallback_name: str) -> ClaudeManifest:
        name = data.get("name")
        return cls(
            name=name if isinstance(name, str) and name.strip() else fallback_name,
            version=data.get("version"),
            description=data.get("description"),
            author=data.get("author"),
            metadata={k: v for k, v in data.items() if k not in _MANIFEST_KEYS},
        )

    def to_dict(self) -> dict:
        data = compact(
            {
                "name": self.name,
                "version": self.version,
                "description": self.description,
                "author": self.author,
            }
        )
        data.update(self.metadata)
        return data


@dataclass
class ClaudeHookMatcher:
    matcher: str
    hooks: list[CommandAction] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "matcher": self.matcher,
            "hooks": [
                compact({"type": "command", "command": h.command, "timeout": h.timeout})
                for h in self.hooks
            ],
        }


@dataclass
class ClaudeMcpServer:
    command: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    timeout: Optional[float] = None

    def to_dict(self) -> dict:
        return compact(
            {"command": self.command, "args": self.args, "env": self.env, "timeout": self.timeout}
        )


@dataclass
class ClaudeSkill:
    name: str
    path: str
    content: str
    references: list[str] = field(default_factory=list)


@dataclass
class ClaudeCommand:
    name: str
    content: str
    path: str
    description: str = ""
    aliases: list[str] = field(default_factory=list)
    parameters: list[CommandParameter] = field(default_factory=list)


@dataclass
class ClaudeAgent:
    name: str
    path: str
    content: str


@dataclass
class ClaudePlugin:
    """Fully parsed Claude Code plugin."""

    root: Path
    manifest: ClaudeManifest
    skills: list[ClaudeSkill] = field(default_factory=list)
    commands: list[ClaudeCommand] = field(default_factory=list)
    agents: list[ClaudeAgent] = field(default_factory=list)
    hooks: dict[str, list[ClaudeHookMatcher]] = field(default_factory=dict)
    mcp_servers: dict[str, ClaudeMcpServer] = field(default_factory=dict)
    env: dict[str, str] = field(default_factory=dict)
    warnings: list[ConversionWarning] = field(default_factory=list)

    def summary(self) -> dict:
        """Return a summary of plugin components."""
        return {
            "name": self.manifest.name,
            "version": self.manifest.version,
            "skills": len(self.skills),
            "commands": len(self.commands),
            "agents": len(self.agents),
            "hooks": len(self.hooks),
            "mcpServers": len(self.mcp_servers),
        }


# ── Parse ────────────────────────────────────────────────────────────


def parse_claude_plugin(plugin_path: Path) -> ClaudePlugin:
    """Parse a Claude Code plugin directory.

    A missing or malformed manifest falls back to the directory name, and
    malformed component files are skipped with a warning on the returned
    plugin rather than aborting the parse.

    Raises:
        ValueError: If ``plugin_path`` is not a directory
    """
    plugin_path = Path(plugin_path).resolve()
    if not plugin_path.is_dir():
        raise ValueError(f"Plugin path is not a directory: {plugin_path}")

    warnings: list[ConversionWarning] = []

    manifest_data = load_json_file(plugin_path / MANIFEST_PATH, "manifest", warnings) or {}
    manifest = ClaudeManifest.from_dict(manifest_data, fallback_name=plugin_path.name)

    settings = load_json_file(plugin_path / SETTINGS_PATH, "settings", warnings) or {}

    hooks = _parse_hooks(load_json_file(plugin_path / HOOKS_PATH, "hooks", warnings), warnings)
    settings_hooks = _parse_hooks(settings, warnings)
    hooks.update(settings_hooks)

    env = string_map(settings.get("env"), "settings", "settings.json env", warnings)

    plugin = ClaudePlugin(
        root=plugin_path,
        manifest=manifest,
        skills=_discover_skills(plugin_path, warnings),
        commands=_discover_commands(plugin_path, warnings),
        agents=_discover_agents(plugin_path, warnings),
        hooks=hooks,
        mcp_servers=_parse_mcp_servers(
            load_json_file(plugin_path / MCP_PATH, "mcpServers", warnings), warnings
        ),
        env=env,
        warnings=warnings,
    )
    logger.debug("Parsed Claude Code plugin %s: %s", plugin_path, plugin.summary())
    return plugin


def _discover_skills(plugin_path: Path, warnings: list[ConversionWarning]) -> list[ClaudeSkill]:
    """Find skills/<name>/SKILL.md and loose skills/*.md files."""
    skills_dir = plugin_path / "skills"
    if not skills_dir.is_dir():
        return []

    skills: dict[str, ClaudeSkill] = {}
    for entry in sorted(skills_dir.iterdir()):
        if entry.is_dir():
            skill_file = entry / "SKILL.md"
            if not skill_file.is_file():
                continue
            references = []
            refs_dir = entry / "references"
            if refs_dir.is_dir():
                references = [f"references/{r.name}" for r in sorted(refs_dir.iterdir())]
            default_name = entry.name
        elif entry.suffix == ".md":
            skill_file = entry
            references = []
            default_name = entry.stem
        else:
            continue

        content = read_text_file(skill_file, "skills", warnings)
        if content is None:
            continue

        name = checked_name(_frontmatter_name(content), default_name, "skills", warnings)
        if name is None:
            continue
        if name in skills:
            warnings.append(
                info("skills", f'Duplicate skill name "{name}"; keeping {skill_file.relative_to(plugin_path)}')
            )
        skills[name] = ClaudeSkill(
            name=name,
            path=str(skill_file.relative_to(plugin_path)),
            content=content,
            references=references,
        )

    return list(skills.values())


def _discover_commands(plugin_path: Path, warnings: list[ConversionWarning]) -> list[ClaudeCommand]:
    commands_dir = plugin_path / "commands"
    if not commands_dir.is_dir():
        return []

    commands: dict[str, ClaudeCommand] = {}
    for cmd_path in sorted(commands_dir.glob("*.md")):
        content = read_text_file(cmd_path, "commands", warnings)
        if content is None:
            continue

        front, body = split_frontmatter(content)
        meta = parse_frontmatter(front) if front is not None else None
        name = checked_name(meta.name if meta else None, cmd_path.stem, "commands", warnings)
        if name is None:
            continue
        commands[name] = ClaudeCommand(
            name=name,
            content=body.lstrip("\n") if front is not None else body,
            path=str(cmd_path.relative_to(plugin_path)),
            description=(meta.description if meta else None) or "",
            aliases=meta.aliases if meta else [],
            parameters=meta.parameters if meta else [],
        )

    return list(commands.values())


def _discover_agents(plugin_path: Path, warnings: list[ConversionWarning]) -> list[ClaudeAgent]:
    agents_dir = plugin_path / "agents"
    if not agents_dir.is_dir():
        return []

    agents: dict[str, ClaudeAgent] = {}
    for agent_path in sorted(agents_dir.glob("*.md")):
        content = read_text_file(agent_path, "agents", warnings)
        if content is None:
            continue
        name = checked_name(_frontmatter_name(content), agent_path.stem, "agents", warnings)
        if name is None:
            continue
        agents[name] = ClaudeAgent(
            name=name, path=str(agent_path.relative_to(plugin_path)), content=content
        )

    return list(agents.values())


def _parse_hooks(
    data: Optional[dict], warnings: list[ConversionWarning]
) -> dict[str, list[ClaudeHookMatcher]]:
    """Parse the ``hooks`` object of hooks.json or settings.json."""
    if not data or "hooks" not in data:
        return {}

    raw_hooks = data["hooks"]
    if not isinstance(raw_hooks, dict):
        warnings.append(warning("hooks", "Skipped hooks: expected an object keyed by event"))
        return {}

    hooks: dict[str, list[ClaudeHookMatcher]] = {}
    for event, matchers in raw_hooks.items():
        if not isinstance(matchers, list):
            warnings.append(warning("hooks", f'Skipped hook event "{event}": expected a list'))
            continue

        parsed = []
        for entry in matchers:
            if not isinstance(entry, dict):
                warnings.append(warning("hooks", f'Skipped malformed matcher for "{event}"'))
                continue
            actions = []
            for hook in list_field(entry.get("hooks"), "hooks", f'"{event}" matcher hooks', warnings):
                if (
                    not isinstance(hook, dict)
                    or hook.get("type", "command") != "command"
                    or not isinstance(hook.get("command"), str)
                ):
                    warnings.append(warning("hooks", f'Skipped unsupported hook action for "{event}"'))
                    continue
                actions.append(CommandAction(command=hook["command"], timeout=hook.get("timeout")))
            parsed.append(ClaudeHookMatcher(matcher=str(entry.get("matcher") or ""), hooks=actions))

        hooks[event] = parsed

    return hooks


def _parse_mcp_servers(
    data: Optional[dict], warnings: list[ConversionWarning]
) -> dict[str, ClaudeMcpServer]:
    if not data:
        return {}

    raw_servers = data.get("mcpServers")
    if not isinstance(raw_servers, dict):
        return {}

    servers = {}
    for name, server in raw_servers.items():
        if not isinstance(server, dict) or not isinstance(server.get("command"), str):
            warnings.append(warning("mcpServers", f'Skipped MCP server "{name}": missing "command"'))
            continue
        servers[name] = ClaudeMcpServer(
            command=server["command"],
            args=[str(a) for a in list_field(server.get("args"), "mcpServers", f'"{name}" args', warnings)],
            env=string_map(server.get("env"), "mcpServers", f'"{name}" env', warnings),
            timeout=server.get("timeout"),
        )
    return servers


def _frontmatter_name(content: str) -> Optional[str]:
    front, _ = split_frontmatter(content)
    if front is None:
        return None
    return parse_frontmatter(front).name


# ── Serialize ────────────────────────────────────────────────────────


def serialize_claude_plugin(plugin: ClaudePlugin, output_path: Path) -> None:
    """Write a Claude Code plugin tree. Safe to call on an existing directory."""
    output_path = Path(output_path)
    for subdir in (".claude-plugin", "skills", "commands", "agents", "hooks"):
        (output_path / subdir).mkdir(parents=True, exist_ok=True)

    write_json(output_path / MANIFEST_PATH, plugin.manifest.to_dict())

    for skill in plugin.skills:
        skill_dir = output_path / "skills" / skill.name
        skill_dir.mkdir(parents=True, exist_ok=True)
        (skill_dir / "SKILL.md").write_text(skill.content, encoding="utf-8")

    for cmd in plugin.commands:
        (output_path / "commands" / f"{cmd.name}.md").write_text(
            _command_to_markdown(cmd), encoding="utf-8"
        )

    for agent in plugin.agents:
        (output_path / "agents" / f"{agent.name}.md").write_text(agent.content, encoding="utf-8")

    if plugin.hooks:
        write_json(
            output_path / HOOKS_PATH,
            {
                "hooks": {
                    event: [m.to_dict() for m in matchers]
                    for event, matchers in plugin.hooks.items()
                }
            },
        )

    if plugin.mcp_servers:
        write_json(
            output_path / MCP_PATH,
            {"mcpServers": {name: s.to_dict() for name, s in plugin.mcp_servers.items()}},
        )

    if plugin.env:
        write_json(output_path / SETTINGS_PATH, {"env": plugin.env})

    logger.debug("Wrote Claude Code plugin to %s", output_path)


def _command_to_markdown(cmd: ClaudeCommand) -> str:
    header = render_command_frontmatter(cmd.name, cmd.description, cmd.aliases, cmd.parameters)
    return f"{header}\n{cmd.content}"
