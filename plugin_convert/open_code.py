"""Parse and serialize the OpenCode plugin format.

OpenCode plugins combine a declarative ``opencode.json`` with code-based
modules (``commands/*.ts`` and ``.opencode/plugins/*.ts``). Generated
modules carry their metadata as a JSON literal so they can be read back
without a TypeScript parser.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

import yaml

from plugin_convert.common import (
    CommandAction,
    CommandParameter,
    ConversionWarning,
    HandlerAction,
    HookAction,
    Transport,
    checked_name,
    compact,
    list_field,
    load_json_file,
    read_text_file,
    string_map,
    warning,
    write_json,
)

logger = logging.getLogger(__name__)

CONFIG_PATH = Path("opencode.json")
YAML_CONFIG_PATHS = (Path("opencode.yaml"), Path("opencode.yml"))
AGENTS_DIR = Path(".opencode") / "agents"
PLUGINS_DIR = Path(".opencode") / "plugins"

COMPONENT_PATHS = (
    "opencode.json",
    "opencode.yaml",
    "opencode.yml",
    "instructions",
    "commands",
    ".opencode/agents",
    ".opencode/plugins",
)

INLINE_HANDLER = "(inline plugin handler)"
GENERATED_HOOKS_MARKER = "Hooks plugin - auto-generated by plugin-convert."

_CONFIG_KEYS = (
    "name",
    "version",
    "description",
    "author",
    "hooks",
    "mcpServers",
    "instructions",
    "commands",
    "agents",
    "environment",
)

# OpenCode event name -> SDK event subscription
SUBSCRIPTION_EVENTS = {
    "beforeTool": "tool.execute.before",
    "afterTool": "tool.execute.after",
    "afterToolError": "session.error",
    "sessionStart": "session.created",
    "sessionEnd": "session.deleted",
    "idle": "session.idle",
    "permissionCheck": "permission.asked",
    "notification": "tui.toast.show",
    "beforePrompt": "tui.prompt.append",
}

_SUBSCRIPTION_PATTERNS = (
    (re.compile(r"tool\.execute\.before"), "beforeTool"),
    (re.compile(r"tool\.execute\.after"), "afterTool"),
    (re.compile(r"session\.created"), "sessionStart"),
    (re.compile(r"session\.idle"), "idle"),
    (re.compile(r"session\.error"), "afterToolError"),
    (re.compile(r"permission\.asked"), "permissionCheck"),
)

_METADATA_RE = re.compile(r"^const metadata = (\{.*?^\});", re.DOTALL | re.MULTILINE)
_DESCRIPTION_RE = re.compile(r"description:\s*[\"'](.+?)[\"']")


@dataclass
class OpenCodeHook:
    event: str
    action: HookAction
    pattern: Optional[str] = None
    environment: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        data: dict = {"event": self.event, "pattern": self.pattern}
        if isinstance(self.action, CommandAction):
            data["command"] = self.action.command
        else:
            data["handler"] = self.action.handler
        data["timeout"] = self.action.timeout
        data["environment"] = self.environment
        return compact(data)

    @classmethod
    def from_dict(cls, data: dict, warnings: list[ConversionWarning]) -> Optional[OpenCodeHook]:
        event = data.get("event")
        if not isinstance(event, str) or not event:
            return None

        timeout = data.get("timeout")
        action: HookAction
        if isinstance(data.get("command"), str):
            action = CommandAction(command=data["command"], timeout=timeout)
        elif isinstance(data.get("script"), str):
            action = CommandAction(command=data["script"], timeout=timeout)
        elif isinstance(data.get("handler"), str):
            action = HandlerAction(handler=data["handler"], timeout=timeout)
        else:
            return None

        pattern = data.get("pattern")
        return cls(
            event=event,
            action=action,
            pattern=pattern if isinstance(pattern, str) and pattern else None,
            environment=string_map(data.get("environment"), "hooks", f'"{event}" environment', warnings),
        )


@dataclass
class OpenCodeMcpServer:
    command: str = ""
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    timeout: Optional[float] = None
    transport: Transport = Transport.STDIO
    url: Optional[str] = None

    def to_dict(self) -> dict:
        return compact(
            {
                "command": self.command,
                "args": self.args,
                "env": self.env,
                "timeout": self.timeout,
                "transport": self.transport.value,
                "url": self.url,
            }
        )


@dataclass
class OpenCodeInstruction:
    name: str
    path: str
    content: str
    triggers: list[str] = field(default_factory=list)


@dataclass
class OpenCodeCommand:
    name: str
    handler: str
    description: str = ""
    aliases: list[str] = field(default_factory=list)
    parameters: list[CommandParameter] = field(default_factory=list)
    body: Optional[str] = None

    def to_dict(self) -> dict:
        return compact(
            {
                "name": self.name,
                "aliases": self.aliases,
                "description": self.description,
                "handler": self.handler,
                "parameters": [p.to_dict() for p in self.parameters],
            }
        )

    @classmethod
    def from_dict(
        cls, data: dict, name: str, handler: str, warnings: list[ConversionWarning]
    ) -> OpenCodeCommand:
        return cls(
            name=name,
            handler=str(data.get("handler") or handler),
            description=str(data.get("description") or ""),
            aliases=[str(a) for a in list_field(data.get("aliases"), "commands", f'"{name}" aliases', warnings)],
            parameters=[
                CommandParameter.from_dict(p)
                for p in list_field(data.get("parameters"), "commands", f'"{name}" parameters', warnings)
                if isinstance(p, dict) and p.get("name")
            ],
        )


@dataclass
class OpenCodeAgent:
    name: str
    provider: str
    model: str
    instructions: str = ""
    description: Optional[str] = None
    tools: list[str] = field(default_factory=list)
    mcp_servers: list[str] = field(default_factory=list)

    def to_config_dict(self) -> dict:
        """Config entry; instruction text lives in .opencode/agents/<name>.md."""
        return compact(
            {
                "name": self.name,
                "description": self.description,
                "provider": self.provider,
                "model": self.model,
                "tools": self.tools,
                "mcpServers": self.mcp_servers,
            }
        )


@dataclass
class OpenCodeConfig:
    name: str
    version: Optional[str] = None
    description: Optional[str] = None
    author: Optional[Union[dict, str]] = None
    environment: dict[str, str] = field(default_factory=dict)
    metadata: dict = field(default_factory=dict)


@dataclass
class OpenCodePlugin:
    """Fully parsed OpenCode plugin."""

    root: Path
    config: OpenCodeConfig
    instructions: list[OpenCodeInstruction] = field(default_factory=list)
    commands: list[OpenCodeCommand] = field(default_factory=list)
    hooks: list[OpenCodeHook] = field(default_factory=list)
    mcp_servers: dict[str, OpenCodeMcpServer] = field(default_factory=dict)
    agents: dict[str, OpenCodeAgent] = field(default_factory=dict)
    warnings: list[ConversionWarning] = field(default_factory=list)

    def summary(self) -> dict:
        return {
            "name": self.config.name,
            "version": self.config.version,
            "instructions": len(self.instructions),
            "commands": len(self.commands),
            "agents": len(self.agents),
            "hooks": len(self.hooks),
            "mcpServers": len(self.mcp_servers),
        }


# ── Parse ────────────────────────────────────────────────────────────


def parse_opencode_plugin(plugin_path: Path) -> OpenCodePlugin:
    """Parse an OpenCode plugin directory.

    Raises:
        ValueError: If ``plugin_path`` is not a directory
    """
    plugin_path = Path(plugin_path).resolve()
    if not plugin_path.is_dir():
        raise ValueError(f"Plugin path is not a directory: {plugin_path}")

    warnings: list[ConversionWarning] = []
    raw = _load_config(plugin_path, warnings)

    name = raw.get("name")
    config = OpenCodeConfig(
        name=name if isinstance(name, str) and name.strip() else plugin_path.name,
        version=raw.get("version"),
        description=raw.get("description"),
        author=raw.get("author"),
        environment=string_map(raw.get("environment"), "config", "environment", warnings),
        metadata={k: v for k, v in raw.items() if k not in _CONFIG_KEYS},
    )

    plugin = OpenCodePlugin(
        root=plugin_path,
        config=config,
        instructions=_discover_instructions(plugin_path, raw, warnings),
        commands=_discover_commands(plugin_path, raw, warnings),
        hooks=_discover_hooks(plugin_path, raw, warnings),
        mcp_servers=_parse_mcp_servers(raw, warnings),
        agents=_discover_agents(plugin_path, raw, warnings),
        warnings=warnings,
    )
    logger.debug("Parsed OpenCode plugin %s: %s", plugin_path, plugin.summary())
    return plugin


def _load_config(plugin_path: Path, warnings: list[ConversionWarning]) -> dict:
    """Load opencode.json, falling back to opencode.yaml / opencode.yml."""
    if (plugin_path / CONFIG_PATH).is_file():
        return load_json_file(plugin_path / CONFIG_PATH, "config", warnings) or {}

    for candidate in YAML_CONFIG_PATHS:
        path = plugin_path / candidate
        if not path.is_file():
            continue
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            logger.warning("Skipping malformed %s: %s", path, e)
            warnings.append(warning("config", f"Skipped malformed {path.name}: {e}"))
            return {}
        if isinstance(data, dict):
            return data
        warnings.append(warning("config", f"Skipped {path.name}: expected a mapping"))
        return {}

    return {}


def _discover_instructions(
    plugin_path: Path, raw: dict, warnings: list[ConversionWarning]
) -> list[OpenCodeInstruction]:
    instructions_dir = plugin_path / "instructions"
    if not instructions_dir.is_dir():
        return []

    triggers: dict[str, list[str]] = {}
    for entry in list_field(raw.get("instructions"), "instructions", "instructions", warnings):
        if isinstance(entry, dict) and entry.get("name") and entry.get("triggers"):
            name = str(entry["name"])
            triggers[name] = [
                str(t)
                for t in list_field(entry["triggers"], "instructions", f'"{name}" triggers', warnings)
            ]

    found: dict[str, OpenCodeInstruction] = {}
    for entry in sorted(instructions_dir.iterdir()):
        if entry.is_file() and entry.suffix == ".md":
            path, name = entry, entry.stem
        elif entry.is_dir() and (entry / "README.md").is_file():
            path, name = entry / "README.md", entry.name
        else:
            continue

        content = read_text_file(path, "instructions", warnings)
        if content is None:
            continue
        found[name] = OpenCodeInstruction(
            name=name,
            path=str(path.relative_to(plugin_path)),
            content=content,
            triggers=triggers.get(name, []),
        )

    return list(found.values())


def _discover_commands(
    plugin_path: Path, raw: dict, warnings: list[ConversionWarning]
) -> list[OpenCodeCommand]:
    commands: dict[str, OpenCodeCommand] = {}

    for entry in list_field(raw.get("commands"), "commands", "commands", warnings):
        if not isinstance(entry, dict) or not entry.get("name"):
            warnings.append(warning("commands", f"Skipped malformed command entry: {entry!r}"))
            continue
        name = checked_name(str(entry["name"]), None, "commands", warnings)
        if name is None:
            continue
        commands[name] = OpenCodeCommand.from_dict(entry, name, f"commands/{name}.ts", warnings)

    commands_dir = plugin_path / "commands"
    if commands_dir.is_dir():
        for path in sorted(commands_dir.iterdir()):
            if not path.is_file() or path.suffix not in (".ts", ".js"):
                continue
            source = read_text_file(path, "commands", warnings)
            if source is None:
                continue
            handler = str(path.relative_to(plugin_path))
            command = _command_from_source(source, path.stem, handler, warnings)
            commands[command.name] = command

    return list(commands.values())


def _command_from_source(
    source: str, default_name: str, handler: str, warnings: list[ConversionWarning]
) -> OpenCodeCommand:
    match = _METADATA_RE.search(source)
    if match:
        try:
            data = json.loads(match.group(1))
        except json.JSONDecodeError as e:
            warnings.append(warning("commands", f"Could not read metadata from {handler}: {e}"))
        else:
            if isinstance(data, dict):
                name = data.get("name")
                name = checked_name(
                    name if isinstance(name, str) else None, default_name, "commands", warnings
                )
                return OpenCodeCommand.from_dict(data, name or default_name, handler, warnings)

    desc = _DESCRIPTION_RE.search(source)
    return OpenCodeCommand(
        name=default_name, handler=handler, description=desc.group(1) if desc else ""
    )


def _discover_hooks(
    plugin_path: Path, raw: dict, warnings: list[ConversionWarning]
) -> list[OpenCodeHook]:
    hooks = []
    raw_hooks = raw.get("hooks") or []
    if not isinstance(raw_hooks, list):
        warnings.append(warning("hooks", "Skipped hooks: expected an array"))
        raw_hooks = []

    for entry in raw_hooks:
        hook = OpenCodeHook.from_dict(entry, warnings) if isinstance(entry, dict) else None
        if hook is None:
            warnings.append(warning("hooks", f"Skipped malformed hook entry: {entry!r}"))
            continue
        hooks.append(hook)

    plugins_dir = plugin_path / PLUGINS_DIR
    if plugins_dir.is_dir():
        for path in sorted(plugins_dir.iterdir()):
            if not path.is_file() or path.suffix not in (".ts", ".js"):
                continue
            source = read_text_file(path, "hooks", warnings)
            if source is None or GENERATED_HOOKS_MARKER in source:
                continue
            for pattern, event in _SUBSCRIPTION_PATTERNS:
                if pattern.search(source):
                    hooks.append(OpenCodeHook(event=event, action=HandlerAction(INLINE_HANDLER)))

    return hooks


def _parse_mcp_servers(raw: dict, warnings: list[ConversionWarning]) -> dict[str, OpenCodeMcpServer]:
    raw_servers = raw.get("mcpServers")
    if not isinstance(raw_servers, dict):
        return {}

    servers = {}
    for name, server in raw_servers.items():
        if not isinstance(server, dict):
            warnings.append(warning("mcpServers", f'Skipped malformed MCP server "{name}"'))
            continue
        try:
            transport = Transport(server.get("transport") or Transport.STDIO.value)
        except ValueError:
            warnings.append(
                warning("mcpServers", f'Skipped MCP server "{name}": unknown transport "{server.get("transport")}"')
            )
            continue
        url = str(server["url"]) if server.get("url") else None
        if transport is not Transport.STDIO and not url:
            warnings.append(
                warning("mcpServers", f'MCP server "{name}" uses {transport.value} transport without a "url"')
            )
        servers[name] = OpenCodeMcpServer(
            command=str(server.get("command") or ""),
            args=[str(a) for a in list_field(server.get("args"), "mcpServers", f'"{name}" args', warnings)],
            env=string_map(server.get("env"), "mcpServers", f'"{name}" env', warnings),
            timeout=server.get("timeout"),
            transport=transport,
            url=url,
        )
    return servers


def _discover_agents(
    plugin_path: Path, raw: dict, warnings: list[ConversionWarning]
) -> dict[str, OpenCodeAgent]:
    agents: dict[str, OpenCodeAgent] = {}

    raw_agents = raw.get("agents") or {}
    if not isinstance(raw_agents, dict):
        warnings.append(warning("agents", "Ignored agents: expected an object keyed by name"))
        raw_agents = {}

    for key, data in raw_agents.items():
        if not isinstance(data, dict):
            warnings.append(warning("agents", f'Skipped malformed agent "{key}"'))
            continue
        name = checked_name(str(key), None, "agents", warnings)
        if name is None:
            continue
        description = data.get("description")
        agents[name] = OpenCodeAgent(
            name=name,
            provider=str(data.get("provider") or "default"),
            model=str(data.get("model") or "default"),
            instructions=str(data.get("instructions") or ""),
            description=str(description) if description is not None else None,
            tools=_tool_names(data.get("tools"), name, warnings),
            mcp_servers=[
                str(s) for s in list_field(data.get("mcpServers"), "agents", f'"{name}" mcpServers', warnings)
            ],
        )

    agents_dir = plugin_path / AGENTS_DIR
    if agents_dir.is_dir():
        for path in sorted(agents_dir.glob("*.md")):
            content = read_text_file(path, "agents", warnings)
            if content is None:
                continue
            if path.stem in agents:
                agents[path.stem].instructions = content
            else:
                agents[path.stem] = OpenCodeAgent(
                    name=path.stem, provider="default", model="default", instructions=content
                )

    return agents


def _tool_names(value: object, agent: str, warnings: list[ConversionWarning]) -> list[str]:
    """Allowed tools from a list of names or a ``{"tool": enabled}`` object."""
    if isinstance(value, dict):
        return [str(tool) for tool, enabled in value.items() if enabled]
    return [str(t) for t in list_field(value, "agents", f'"{agent}" tools', warnings)]


# ── Serialize ────────────────────────────────────────────────────────


def serialize_opencode_plugin(plugin: OpenCodePlugin, output_path: Path) -> None:
    """Write an OpenCode plugin tree. Safe to call on an existing directory."""
    output_path = Path(output_path)
    for subdir in (PLUGINS_DIR, AGENTS_DIR, Path("instructions"), Path("commands")):
        (output_path / subdir).mkdir(parents=True, exist_ok=True)

    write_json(output_path / CONFIG_PATH, _config_to_dict(plugin))

    for instruction in plugin.instructions:
        instruction_dir = output_path / "instructions" / instruction.name
        instruction_dir.mkdir(parents=True, exist_ok=True)
        (instruction_dir / "README.md").write_text(instruction.content, encoding="utf-8")

    for cmd in plugin.commands:
        (output_path / "commands" / f"{cmd.name}.ts").write_text(
            generate_command_stub(cmd), encoding="utf-8"
        )

    for name, agent in plugin.agents.items():
        (output_path / AGENTS_DIR / f"{name}.md").write_text(agent.instructions, encoding="utf-8")

    if plugin.hooks:
        (output_path / PLUGINS_DIR / "hooks.ts").write_text(
            generate_hooks_plugin(plugin.hooks), encoding="utf-8"
        )

    logger.debug("Wrote OpenCode plugin to %s", output_path)


def _config_to_dict(plugin: OpenCodePlugin) -> dict:
    config = plugin.config
    data = compact(
        {
            "name": config.name,
            "version": config.version,
            "description": config.description,
            "author": config.author,
            "hooks": [h.to_dict() for h in plugin.hooks],
            "mcpServers": {name: s.to_dict() for name, s in plugin.mcp_servers.items()},
            "instructions": [
                compact(
                    {
                        "name": i.name,
                        "path": f"instructions/{i.name}/README.md",
                        "triggers": i.triggers,
                    }
                )
                for i in plugin.instructions
            ],
            "commands": [c.to_dict() for c in plugin.commands],
            "agents": {name: a.to_config_dict() for name, a in plugin.agents.items()},
            "environment": config.environment,
        }
    )
    data.update(config.metadata)
    return data


def generate_command_stub(cmd: OpenCodeCommand) -> str:
    """Render a TypeScript command module for ``cmd``."""
    metadata = json.dumps(
        compact(
            {
                "name": cmd.name,
                "aliases": cmd.aliases,
                "description": cmd.description,
                "parameters": [p.to_dict() for p in cmd.parameters],
            }
        ),
        indent=2,
        ensure_ascii=False,
    )
    title = _single_line(cmd.description or cmd.name).replace("*/", "*\\/")

    lines = [
        "/**",
        f" * {title}",
        " *",
        " * Auto-generated by plugin-convert from a Claude Code command.",
        " * Adapt this stub to implement the command logic.",
        " */",
        "",
        f"const metadata = {metadata};",
        "",
    ]
    if cmd.body and cmd.body.strip():
        lines.append("// Original command prompt:")
        lines.extend(f"// {line}".rstrip() for line in cmd.body.strip().splitlines())
        lines.append("")
    lines.extend(
        [
            "export default {",
            "  ...metadata,",
            "  async handler(args: Record<string, unknown>) {",
            f"    console.log({json.dumps(f'Command {cmd.name} called with:')}, args);",
            "  },",
            "};",
            "",
        ]
    )
    return "\n".join(lines)


def generate_hooks_plugin(hooks: list[OpenCodeHook]) -> str:
    """Render a TypeScript plugin module subscribing to each hook's event."""
    handlers = []
    for hook in hooks:
        subscription = json.dumps(SUBSCRIPTION_EVENTS.get(hook.event, hook.event))
        action = hook.action
        if isinstance(action, CommandAction):
            handlers.append(
                "\n".join(
                    [
                        f"  // {hook.event}: {_single_line(action.command)}",
                        f"  client.event.subscribe({subscription}, async (event) => {{",
                        '    const { execSync } = await import("child_process");',
                        f"    execSync({json.dumps(action.command)}, {{",
                        "      env: { ...process.env, OPENCODE_EVENT: JSON.stringify(event) },",
                        '      stdio: "pipe",',
                        "    });",
                        "  });",
                    ]
                )
            )
        elif action.handler != INLINE_HANDLER:
            handlers.append(
                "\n".join(
                    [
                        f"  // {hook.event}: {_single_line(action.handler)}",
                        f"  client.event.subscribe({subscription}, async (event) => {{",
                        f"    const handler = await import({json.dumps(action.handler)});",
                        "    await handler.default(event);",
                        "  });",
                    ]
                )
            )

    body = "\n\n".join(handlers) if handlers else "  // No hooks to register"
    return f"""/**
 * {GENERATED_HOOKS_MARKER}
 *
 * Registers event handlers that correspond to Claude Code hooks.
 * Review and adapt each handler for OpenCode's event system.
 */
import type {{ PluginContext }} from "@opencode-ai/plugin";

export const HooksPlugin = async ({{ client }}: PluginContext) => {{
{body}

  return {{}};
}};

export default HooksPlugin;
"""


def _single_line(value: str) -> str:
    return " ".join(value.split())
