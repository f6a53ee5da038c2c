"""Tests for plugin validation and format detection."""

from __future__ import annotations

import json
from pathlib import Path

from plugin_convert.validator import detect_plugin_format, validate_plugin


class TestDetectPluginFormat:
    def test_claude_code(self, claude_plugin: Path) -> None:
        assert detect_plugin_format(claude_plugin) == "claude-code"

    def test_opencode(self, opencode_plugin: Path) -> None:
        assert detect_plugin_format(opencode_plugin) == "opencode"

    def test_layout_without_manifest(self, tmp_path: Path) -> None:
        (tmp_path / "skills").mkdir()
        assert detect_plugin_format(tmp_path) == "claude-code"

    def test_unknown(self, tmp_path: Path) -> None:
        assert detect_plugin_format(tmp_path) is None
        assert detect_plugin_format(tmp_path / "missing") is None


class TestValidateClaudeCode:
    def test_valid_plugin(self, claude_plugin: Path) -> None:
        result = validate_plugin(claude_plugin)

        assert result.valid
        assert result.errors == []
        assert "✓ Valid plugin" in str(result)

    def test_missing_manifest(self, tmp_path: Path) -> None:
        (tmp_path / "skills").mkdir()

        result = validate_plugin(tmp_path, "claude-code")

        assert not result.valid
        assert result.errors == ["Missing .claude-plugin/plugin.json"]

    def test_manifest_without_name(self, claude_plugin: Path) -> None:
        (claude_plugin / ".claude-plugin" / "plugin.json").write_text(json.dumps({"version": "1"}))

        result = validate_plugin(claude_plugin)

        assert not result.valid
        assert any('"name" is required' in e for e in result.errors)

    def test_unknown_hook_event_is_a_warning(self, claude_plugin: Path) -> None:
        hooks = {"hooks": {"Mystery": [{"matcher": "", "hooks": [{"type": "command", "command": "x"}]}]}}
        (claude_plugin / "hooks" / "hooks.json").write_text(json.dumps(hooks))

        result = validate_plugin(claude_plugin)

        assert result.valid
        assert any("Mystery" in w for w in result.warnings)

    def test_hook_without_command(self, claude_plugin: Path) -> None:
        hooks = {"hooks": {"PreToolUse": [{"matcher": "", "hooks": [{"type": "command"}]}]}}
        (claude_plugin / "hooks" / "hooks.json").write_text(json.dumps(hooks))

        assert not validate_plugin(claude_plugin).valid

    def test_malformed_mcp_file(self, claude_plugin: Path) -> None:
        (claude_plugin / ".mcp.json").write_text("{")

        result = validate_plugin(claude_plugin)

        assert not result.valid
        assert any(".mcp.json" in e for e in result.errors)

    def test_skill_directory_without_skill_file(self, claude_plugin: Path) -> None:
        (claude_plugin / "skills" / "empty").mkdir()

        result = validate_plugin(claude_plugin)

        assert result.valid
        assert result.warnings == ["skills/empty has no SKILL.md"]


class TestValidateOpenCode:
    def test_valid_plugin(self, opencode_plugin: Path) -> None:
        result = validate_plugin(opencode_plugin, "opencode")

        # the fixture references a command stub that does not exist yet
        assert result.valid
        assert any("deploy" in w for w in result.warnings)

    def test_missing_config(self, tmp_path: Path) -> None:
        result = validate_plugin(tmp_path, "opencode")

        assert result.errors == ["Missing opencode.json"]

    def test_stdio_server_needs_command(self, tmp_path: Path) -> None:
        config = {"name": "x", "mcpServers": {"srv": {"args": ["a"]}}}
        (tmp_path / "opencode.json").write_text(json.dumps(config))

        result = validate_plugin(tmp_path)

        assert not result.valid
        assert any("srv" in e for e in result.errors)

    def test_hook_needs_action(self, tmp_path: Path) -> None:
        config = {"name": "x", "hooks": [{"event": "beforeTool"}]}
        (tmp_path / "opencode.json").write_text(json.dumps(config))

        assert not validate_plugin(tmp_path).valid

    def test_yaml_config(self, tmp_path: Path) -> None:
        (tmp_path / "opencode.yml").write_text("name: from-yaml\n")

        assert validate_plugin(tmp_path).valid

    def test_malformed_collections_are_errors(self, tmp_path: Path) -> None:
        config = {"name": "x", "commands": 5, "instructions": "notes", "agents": {"team/lead": {}}}
        (tmp_path / "opencode.json").write_text(json.dumps(config))

        result = validate_plugin(tmp_path)

        assert not result.valid
        assert 'opencode config: "commands" must be an array' in result.errors
        assert 'opencode config: "instructions" must be an array' in result.errors
        assert any("team/lead" in e for e in result.errors)

    def test_unknown_format(self, tmp_path: Path) -> None:
        result = validate_plugin(tmp_path, "vscode")

        assert not result.valid
        assert "Unknown plugin format" in result.errors[0]
