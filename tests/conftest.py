"""Fixture plugins shared by the test modules."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

GREET_COMMAND = """---
name: greet
aliases: [hi, hello]
description: Greet someone
parameters:
  - name: who
    type: string
    description: Person to greet
    required: true
  - name: loud
    type: boolean
    description: Shout the greeting
    required: false
---

Say hello to $ARGUMENTS.
"""


def create_claude_plugin(tmp_path: Path, name: str = "demo") -> Path:
    """Create a Claude Code plugin touching every component kind."""
    plugin_dir = tmp_path / name
    plugin_dir.mkdir()

    manifest_dir = plugin_dir / ".claude-plugin"
    manifest_dir.mkdir()
    manifest = {
        "name": name,
        "version": "1.0.0",
        "description": "A demo plugin",
        "author": {"name": "Demo Author"},
        "homepage": "https://example.com",
    }
    (manifest_dir / "plugin.json").write_text(json.dumps(manifest))

    skill_dir = plugin_dir / "skills" / "demo-skill"
    skill_dir.mkdir(parents=True)
    (skill_dir / "SKILL.md").write_text("# Demo\n")

    review_dir = plugin_dir / "skills" / "review"
    (review_dir / "references").mkdir(parents=True)
    (review_dir / "SKILL.md").write_text(
        "---\nname: review\ndescription: Review code\n---\n\nRun /demo:demo-skill first.\n"
    )
    (review_dir / "references" / "checklist.md").write_text("- [ ] tests\n")

    commands_dir = plugin_dir / "commands"
    commands_dir.mkdir()
    (commands_dir / "greet.md").write_text(GREET_COMMAND)

    agents_dir = plugin_dir / "agents"
    agents_dir.mkdir()
    (agents_dir / "reviewer.md").write_text(
        "---\nname: reviewer\ndescription: Reviews code\n---\n\nYou review code.\n"
    )

    hooks_dir = plugin_dir / "hooks"
    hooks_dir.mkdir()
    hooks = {
        "hooks": {
            "PreToolUse": [
                {"matcher": "Bash", "hooks": [{"type": "command", "command": "echo pre"}]}
            ],
            "Stop": [{"matcher": "", "hooks": [{"type": "command", "command": "echo bye", "timeout": 5}]}],
        }
    }
    (hooks_dir / "hooks.json").write_text(json.dumps(hooks))

    mcp = {
        "mcpServers": {
            "files": {
                "command": "${CLAUDE_PLUGIN_ROOT}/bin/server",
                "args": ["--root", "${CLAUDE_PLUGIN_ROOT}/data"],
                "env": {"DATA_DIR": "${CLAUDE_PLUGIN_ROOT}/data"},
            }
        }
    }
    (plugin_dir / ".mcp.json").write_text(json.dumps(mcp))

    return plugin_dir


def create_opencode_plugin(tmp_path: Path, name: str = "oc-demo") -> Path:
    """Create an OpenCode plugin touching every component kind."""
    plugin_dir = tmp_path / name
    plugin_dir.mkdir()

    config = {
        "name": name,
        "version": "2.0.0",
        "description": "OpenCode demo",
        "author": "Jane Doe",
        "hooks": [
            {"event": "beforeTool", "pattern": "Bash", "command": "echo before"},
            {"event": "afterPrompt", "command": "echo after"},
            {"event": "sessionStart", "handler": "./handlers/start.js"},
        ],
        "mcpServers": {
            "remote": {"transport": "http", "url": "https://mcp.example.com/sse"},
            "local": {"command": "${OPENCODE_PLUGIN_ROOT}/bin/srv", "args": ["--fast"]},
        },
        "instructions": [
            {"name": "style", "path": "instructions/style/README.md", "triggers": ["style", "format"]}
        ],
        "commands": [
            {
                "name": "deploy",
                "description": "Deploy the app",
                "parameters": [
                    {"name": "env", "type": "string", "description": "Target environment", "required": True}
                ],
            }
        ],
        "agents": {"planner": {"provider": "openai", "model": "gpt-4o", "tools": ["read", "grep"]}},
        "environment": {"LOG_LEVEL": "debug"},
        "homepage": "https://example.com",
    }
    (plugin_dir / "opencode.json").write_text(json.dumps(config))

    style_dir = plugin_dir / "instructions" / "style"
    style_dir.mkdir(parents=True)
    (style_dir / "README.md").write_text("# Style\n")
    (plugin_dir / "instructions" / "notes.md").write_text("Notes\n")

    agents_dir = plugin_dir / ".opencode" / "agents"
    agents_dir.mkdir(parents=True)
    (agents_dir / "planner.md").write_text("You plan work.\n")

    plugins_dir = plugin_dir / ".opencode" / "plugins"
    plugins_dir.mkdir()
    (plugins_dir / "custom.ts").write_text(
        'export const Custom = async ({ client }) => {\n'
        '  client.event.subscribe("session.idle", async () => {});\n'
        "  return {};\n"
        "};\n"
    )

    return plugin_dir


@pytest.fixture
def claude_plugin(tmp_path: Path) -> Path:
    return create_claude_plugin(tmp_path)


@pytest.fixture
def opencode_plugin(tmp_path: Path) -> Path:
    return create_opencode_plugin(tmp_path)
