"""Translate plugin components between Claude Code and OpenCode.

Every function is pure: it takes a full component collection from the
source model and returns the target collection together with the
warnings describing anything lossy about the mapping.
"""

from __future__ import annotations

import re
import shlex
from dataclasses import fields, replace
from enum import Enum
from typing import Callable, Iterator, TypeVar

from plugin_convert.claude_code import (
    ClaudeAgent,
    ClaudeCommand,
    ClaudeHookMatcher,
    ClaudeManifest,
    ClaudeMcpServer,
    ClaudeSkill,
)
from plugin_convert.common import (
    CLAUDE_ROOT_PLACEHOLDER,
    OPENCODE_ROOT_PLACEHOLDER,
    CommandAction,
    ConversionWarning,
    Direction,
    HandlerAction,
    Transport,
    info,
    lookup_hook_event,
    warning,
)
from plugin_convert.frontmatter import parse_frontmatter, split_frontmatter
from plugin_convert.open_code import (
    INLINE_HANDLER,
    OpenCodeAgent,
    OpenCodeCommand,
    OpenCodeConfig,
    OpenCodeHook,
    OpenCodeInstruction,
    OpenCodeMcpServer,
)

DEFAULT_AGENT_PROVIDER = "anthropic"
DEFAULT_AGENT_MODEL = "claude-sonnet-4-20250514"

_NAMESPACED_REF_RE = re.compile(r"(?<![\w/:.])/([A-Za-z0-9][\w-]*):([A-Za-z0-9][\w-]*)")
_HEADING_RE = re.compile(r"^#\s+(.+)$", re.MULTILINE)
_PARAGRAPH_RE = re.compile(r"^([^\n#<].+)$", re.MULTILINE)

T = TypeVar("T")


# ── Manifest ─────────────────────────────────────────────────────────


def translate_manifest_to_opencode(
    manifest: ClaudeManifest, env: dict[str, str]
) -> tuple[OpenCodeConfig, list[ConversionWarning]]:
    warnings = []
    if manifest.metadata:
        keys = ", ".join(sorted(str(k) for k in manifest.metadata))
        warnings.append(
            info("manifest", f"Manifest fields with no OpenCode equivalent were dropped: {keys}")
        )

    config = OpenCodeConfig(
        name=manifest.name,
        version=manifest.version,
        description=manifest.description,
        author=manifest.author,
        environment=dict(env),
    )
    return config, warnings


def translate_manifest_to_claude(
    config: OpenCodeConfig,
) -> tuple[ClaudeManifest, dict[str, str], list[ConversionWarning]]:
    """Returns the manifest and the plugin environment for settings.json."""
    warnings = []
    if config.metadata:
        keys = ", ".join(sorted(str(k) for k in config.metadata))
        warnings.append(
            info("manifest", f"Config fields with no Claude Code equivalent were dropped: {keys}")
        )

    author = {"name": config.author} if isinstance(config.author, str) else config.author
    manifest = ClaudeManifest(
        name=config.name,
        version=config.version,
        description=config.description,
        author=author,
    )
    return manifest, dict(config.environment), warnings


# ── Hooks ────────────────────────────────────────────────────────────


def translate_hooks_to_opencode(
    hooks: dict[str, list[ClaudeHookMatcher]],
) -> tuple[list[OpenCodeHook], list[ConversionWarning]]:
    """Flatten Claude Code event/matcher/hook nesting into OpenCode hook entries.

    The matcher regex has no counterpart in OpenCode's handler model, so it
    travels along as the hook's ``pattern`` filter.
    """
    result: list[OpenCodeHook] = []
    warnings: list[ConversionWarning] = []

    for event, matchers in hooks.items():
        mapping = lookup_hook_event(event, Direction.CLAUDE_TO_OPENCODE)
        if mapping is None:
            warnings.append(
                info(
                    "hooks",
                    f'Hook event "{event}" has no OpenCode equivalent; dropped',
                    "Re-implement this hook as an OpenCode plugin event handler",
                )
            )
            continue

        if not mapping.bidirectional:
            warnings.append(
                info(
                    "hooks",
                    f'Hook event "{event}" approximated as "{mapping.open_code}": {mapping.description}',
                )
            )

        for matcher in matchers:
            for action in matcher.hooks:
                result.append(
                    OpenCodeHook(
                        event=mapping.open_code,
                        action=CommandAction(command=action.command, timeout=action.timeout),
                        pattern=matcher.matcher or None,
                    )
                )

    return result, warnings


def translate_hooks_to_claude(
    hooks: list[OpenCodeHook],
) -> tuple[dict[str, list[ClaudeHookMatcher]], list[ConversionWarning]]:
    """Group OpenCode hook entries into Claude Code event/matcher lists."""
    result: dict[str, list[ClaudeHookMatcher]] = {}
    by_matcher: dict[tuple[str, str], ClaudeHookMatcher] = {}
    warnings: list[ConversionWarning] = []

    for hook in hooks:
        mapping = lookup_hook_event(hook.event, Direction.OPENCODE_TO_CLAUDE)
        if mapping is None:
            warnings.append(
                info(
                    "hooks",
                    f'Hook event "{hook.event}" has no Claude Code equivalent; dropped',
                    "Consider a Claude Code hook on the nearest lifecycle event",
                )
            )
            continue

        action = hook.action
        if isinstance(action, HandlerAction):
            command = _wrap_handler(hook.event, action.handler)
            warnings.append(
                info(
                    "hooks",
                    f'Hook "{hook.event}" handler "{action.handler}" wrapped as shell command: {command}',
                    "Port the handler logic to a script invoked by this hook",
                )
            )
        else:
            command = action.command

        if hook.environment:
            assignments = " ".join(
                f"{key}={shlex.quote(value)}" for key, value in hook.environment.items()
            )
            command = f"{assignments} {command}"
            warnings.append(
                info(
                    "hooks",
                    f'Hook "{hook.event}" environment inlined into its command',
                )
            )

        key = (mapping.claude_code, hook.pattern or "")
        if key not in by_matcher:
            by_matcher[key] = ClaudeHookMatcher(matcher=hook.pattern or "")
            result.setdefault(mapping.claude_code, []).append(by_matcher[key])
        by_matcher[key].hooks.append(CommandAction(command=command, timeout=action.timeout))

    return result, warnings


def _wrap_handler(event: str, handler: str) -> str:
    if handler == INLINE_HANDLER:
        return "echo " + shlex.quote(f"OpenCode inline plugin handler for {event} must be ported manually")
    relative = handler[2:] if handler.startswith("./") else handler
    return f'node "{CLAUDE_ROOT_PLACEHOLDER}/{relative}"'


# ── MCP servers ──────────────────────────────────────────────────────


def map_string_fields(server: T, rewrite: Callable[[str], str]) -> T:
    """Apply ``rewrite`` to every string-bearing field of a server descriptor.

    Covers plain strings, lists of strings, and string-valued dicts, so new
    descriptor fields are handled without touching the callers.
    """
    changes = {}
    for f in fields(server):  # type: ignore[arg-type]
        value = getattr(server, f.name)
        if isinstance(value, Enum):
            continue
        if isinstance(value, str):
            changes[f.name] = rewrite(value)
        elif isinstance(value, list):
            changes[f.name] = [rewrite(v) if isinstance(v, str) else v for v in value]
        elif isinstance(value, dict):
            changes[f.name] = {k: rewrite(v) if isinstance(v, str) else v for k, v in value.items()}
    return replace(server, **changes)  # type: ignore[type-var]


def iter_string_fields(server: object) -> Iterator[str]:
    """Yield every string held by a server descriptor, in field order."""
    for f in fields(server):  # type: ignore[arg-type]
        value = getattr(server, f.name)
        if isinstance(value, Enum):
            continue
        if isinstance(value, str):
            yield value
        elif isinstance(value, list):
            yield from (v for v in value if isinstance(v, str))
        elif isinstance(value, dict):
            yield from (v for v in value.values() if isinstance(v, str))


def _contains_placeholder(server: object, placeholder: str) -> bool:
    return any(placeholder in value for value in iter_string_fields(server))


def translate_mcp_to_opencode(
    servers: dict[str, ClaudeMcpServer],
) -> tuple[dict[str, OpenCodeMcpServer], list[ConversionWarning]]:
    result: dict[str, OpenCodeMcpServer] = {}
    warnings: list[ConversionWarning] = []

    for name, server in servers.items():
        converted = OpenCodeMcpServer(
            command=server.command,
            args=list(server.args),
            env=dict(server.env),
            timeout=server.timeout,
            transport=Transport.STDIO,
        )

        if "http" in server.command or any("http" in arg for arg in server.args):
            converted.transport = Transport.HTTP
            converted.url = next(
                (a for a in server.args if a.startswith(("http://", "https://"))), None
            )
            warnings.append(
                info(
                    "mcpServers",
                    f'MCP server "{name}" appears to use HTTP transport; verify the URL configuration',
                )
            )

        if _contains_placeholder(converted, CLAUDE_ROOT_PLACEHOLDER):
            converted = map_string_fields(
                converted, lambda s: s.replace(CLAUDE_ROOT_PLACEHOLDER, OPENCODE_ROOT_PLACEHOLDER)
            )
            warnings.append(
                info(
                    "mcpServers",
                    f'MCP server "{name}" uses CLAUDE_PLUGIN_ROOT; mapped to OPENCODE_PLUGIN_ROOT',
                    "Verify the OPENCODE_PLUGIN_ROOT environment variable is set correctly",
                )
            )

        result[name] = converted

    return result, warnings


def translate_mcp_to_claude(
    servers: dict[str, OpenCodeMcpServer],
) -> tuple[dict[str, ClaudeMcpServer], list[ConversionWarning]]:
    result: dict[str, ClaudeMcpServer] = {}
    warnings: list[ConversionWarning] = []

    for name, server in servers.items():
        command, args = server.command, list(server.args)

        if server.transport is not Transport.STDIO:
            suggestion = "Use a stdio proxy wrapper or configure via Streamable HTTP transport"
            if not command and server.url:
                command, args = "npx", ["-y", "mcp-remote", server.url, *args]
                suggestion = f"Wrapped {server.url} with the mcp-remote stdio proxy; verify it works"
            warnings.append(
                warning(
                    "mcpServers",
                    f'MCP server "{name}" uses "{server.transport.value}" transport which '
                    "Claude Code doesn't natively support",
                    suggestion,
                )
            )

        if not command:
            warnings.append(warning("mcpServers", f'MCP server "{name}" has no launch command; skipped'))
            continue

        converted = ClaudeMcpServer(
            command=command, args=args, env=dict(server.env), timeout=server.timeout
        )
        if _contains_placeholder(converted, OPENCODE_ROOT_PLACEHOLDER):
            converted = map_string_fields(
                converted, lambda s: s.replace(OPENCODE_ROOT_PLACEHOLDER, CLAUDE_ROOT_PLACEHOLDER)
            )
            warnings.append(
                info("mcpServers", f'MCP server "{name}" uses OPENCODE_PLUGIN_ROOT; mapped to CLAUDE_PLUGIN_ROOT')
            )

        result[name] = converted

    return result, warnings


# ── Skills / instructions ────────────────────────────────────────────


def rewrite_skill_references(content: str) -> tuple[str, int]:
    """Rewrite ``/plugin:skill`` references to bare ``/skill``; returns (content, count)."""
    return _NAMESPACED_REF_RE.subn(r"/\2", content)


def translate_skills_to_opencode(
    skills: list[ClaudeSkill],
) -> tuple[list[OpenCodeInstruction], list[ConversionWarning]]:
    instructions: list[OpenCodeInstruction] = []
    warnings: list[ConversionWarning] = []

    for skill in skills:
        content, rewritten = rewrite_skill_references(skill.content)
        if rewritten:
            warnings.append(
                info("skills", f'Skill "{skill.name}": rewrote {rewritten} namespaced reference(s)')
            )

        if skill.references:
            warnings.append(
                info(
                    "skills",
                    f'Skill "{skill.name}" has {len(skill.references)} reference file(s) '
                    "that need manual migration",
                    "Copy reference files to the instruction directory and update paths",
                )
            )

        instructions.append(
            OpenCodeInstruction(
                name=skill.name,
                path=f"instructions/{skill.name}/README.md",
                content=content,
            )
        )

    return instructions, warnings


def translate_instructions_to_claude(
    instructions: list[OpenCodeInstruction],
) -> tuple[list[ClaudeSkill], list[ConversionWarning]]:
    skills: list[ClaudeSkill] = []
    warnings: list[ConversionWarning] = []

    for instruction in instructions:
        content = instruction.content
        if instruction.triggers:
            triggers = ", ".join(instruction.triggers)
            content = f"<!-- OpenCode triggers: {triggers} -->\n\n{content}"
            warnings.append(
                info(
                    "skills",
                    f'Instruction "{instruction.name}" has triggers [{triggers}] preserved as HTML comments',
                    "Claude Code skills activate automatically; consider adding trigger keywords to the skill content",
                )
            )

        skills.append(
            ClaudeSkill(
                name=instruction.name,
                path=f"skills/{instruction.name}/SKILL.md",
                content=content,
            )
        )

    return skills, warnings


# ── Commands ─────────────────────────────────────────────────────────


def translate_commands_to_opencode(
    commands: list[ClaudeCommand],
) -> tuple[list[OpenCodeCommand], list[ConversionWarning]]:
    result: list[OpenCodeCommand] = []
    warnings: list[ConversionWarning] = []

    for cmd in commands:
        result.append(
            OpenCodeCommand(
                name=cmd.name,
                handler=f"commands/{cmd.name}.ts",
                description=cmd.description,
                aliases=list(cmd.aliases),
                parameters=[replace(p) for p in cmd.parameters],
                body=cmd.content,
            )
        )
        warnings.append(
            info(
                "commands",
                f'Command "{cmd.name}" converted to TypeScript stub; implement handler logic',
                "The markdown prompt has been preserved as a comment in the generated file",
            )
        )

    return result, warnings


def translate_commands_to_claude(
    commands: list[OpenCodeCommand],
) -> tuple[list[ClaudeCommand], list[ConversionWarning]]:
    result: list[ClaudeCommand] = []
    warnings: list[ConversionWarning] = []

    for cmd in commands:
        result.append(
            ClaudeCommand(
                name=cmd.name,
                content=_command_markdown(cmd),
                path=f"commands/{cmd.name}.md",
                description=cmd.description,
                aliases=list(cmd.aliases),
                parameters=[replace(p) for p in cmd.parameters],
            )
        )
        warnings.append(
            info(
                "commands",
                f'Command "{cmd.name}" had a TypeScript handler at "{cmd.handler}"; converted to markdown',
                "Claude Code commands are markdown-based; handler logic must be implemented via hooks or MCP tools",
            )
        )

    return result, warnings


def _command_markdown(cmd: OpenCodeCommand) -> str:
    parts = [f"# {cmd.name}", ""]
    if cmd.description:
        parts.extend([cmd.description, ""])

    if cmd.parameters:
        parts.extend(["## Parameters", ""])
        for param in cmd.parameters:
            required = " (required)" if param.required else " (optional)"
            parts.append(f"- `{param.name}` ({param.type}){required}: {param.description}")
        parts.append("")

    parts.append("<!-- Converted from OpenCode TypeScript command -->")
    return "\n".join(parts) + "\n"


# ── Agents ───────────────────────────────────────────────────────────


def translate_agents_to_opencode(
    agents: list[ClaudeAgent],
    provider: str = DEFAULT_AGENT_PROVIDER,
    model: str = DEFAULT_AGENT_MODEL,
) -> tuple[dict[str, OpenCodeAgent], list[ConversionWarning]]:
    result: dict[str, OpenCodeAgent] = {}
    warnings: list[ConversionWarning] = []

    for agent in agents:
        result[agent.name] = OpenCodeAgent(
            name=agent.name,
            provider=provider,
            model=model,
            instructions=agent.content,
            description=extract_description(agent.content) or None,
        )
        warnings.append(
            info(
                "agents",
                f'Agent "{agent.name}" defaults to {provider}/{model}; update provider and model as needed',
                "OpenCode supports multiple providers; configure the preferred model in opencode.json",
            )
        )

    return result, warnings


def translate_agents_to_claude(
    agents: dict[str, OpenCodeAgent],
) -> tuple[list[ClaudeAgent], list[ConversionWarning]]:
    result: list[ClaudeAgent] = []
    warnings: list[ConversionWarning] = []

    for name, agent in agents.items():
        content = agent.instructions

        if _is_specific(agent.provider) or _is_specific(agent.model):
            comment = f"<!-- Original provider: {agent.provider}, model: {agent.model} -->\n\n"
            content = _insert_after_frontmatter(content, comment)
            warnings.append(
                info(
                    "agents",
                    f'Agent "{name}" used {agent.provider}/{agent.model}; preserved as a leading comment',
                    "Claude Code agents use the session's model; reconsider whether a model override is needed",
                )
            )

        if agent.tools:
            warnings.append(
                info(
                    "agents",
                    f'Agent "{name}" has tool restrictions [{", ".join(agent.tools)}]; '
                    "use hooks to enforce in Claude Code",
                )
            )
        if agent.mcp_servers:
            warnings.append(
                info(
                    "agents",
                    f'Agent "{name}" is limited to MCP servers [{", ".join(agent.mcp_servers)}]; '
                    "Claude Code agents see every plugin MCP server",
                )
            )

        result.append(ClaudeAgent(name=name, path=f"agents/{name}.md", content=content))

    return result, warnings


def extract_description(markdown: str) -> str:
    """Front-matter description, else the first heading, else the first paragraph."""
    front, body = split_frontmatter(markdown)
    if front is not None:
        description = parse_frontmatter(front).description
        if description:
            return description

    heading = _HEADING_RE.search(body)
    if heading:
        return heading.group(1).strip()

    paragraph = _PARAGRAPH_RE.search(body)
    if paragraph:
        return paragraph.group(1).strip()[:200]

    return ""


def _is_specific(value: str) -> bool:
    return bool(value) and value != "default"


def _insert_after_frontmatter(content: str, prefix: str) -> str:
    front, body = split_frontmatter(content)
    if front is None:
        return prefix + content
    return f"---\n{front}\n---\n{prefix}{body}"
