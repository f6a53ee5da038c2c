"""Tests for the plugin-convert CLI."""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from plugin_convert.cli import main


def run(tmp_path: Path, *args: str):
    runner = CliRunner()
    return runner.invoke(main, ["--config-home", str(tmp_path / "config"), *args])


class TestConvertCommand:
    def test_detects_direction(self, claude_plugin: Path, tmp_path: Path) -> None:
        output = tmp_path / "out"

        result = run(tmp_path, "convert", str(claude_plugin), str(output))

        assert result.exit_code == 0, result.output
        assert "claude-to-opencode" in result.output
        assert "✓ Conversion complete" in result.output
        assert (output / "opencode.json").is_file()

    def test_json_output(self, opencode_plugin: Path, tmp_path: Path) -> None:
        output = tmp_path / "out"

        result = run(tmp_path, "convert", str(opencode_plugin), str(output), "--mode", "diff", "--json")

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["success"] is True
        assert data["direction"] == "opencode-to-claude"
        assert data["mode"] == "diff"
        assert data["changesApplied"]
        assert not output.exists()

    def test_undetectable_source(self, tmp_path: Path) -> None:
        source = tmp_path / "plain"
        source.mkdir()

        result = run(tmp_path, "convert", str(source), str(tmp_path / "out"))

        assert result.exit_code == 1
        assert "--direction" in result.output

    def test_explicit_direction(self, tmp_path: Path) -> None:
        source = tmp_path / "plain"
        source.mkdir()

        result = run(
            tmp_path, "convert", str(source), str(tmp_path / "out"), "-d", "claude-to-opencode"
        )

        assert result.exit_code == 0, result.output
        config = json.loads((tmp_path / "out" / "opencode.json").read_text())
        assert config == {"name": "plain"}

    def test_settings_are_applied(self, claude_plugin: Path, tmp_path: Path) -> None:
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "config.yaml").write_text("default_provider: openai\ndefault_model: gpt-4o\n")

        result = run(tmp_path, "convert", str(claude_plugin), str(tmp_path / "out"))

        assert result.exit_code == 0, result.output
        config = json.loads((tmp_path / "out" / "opencode.json").read_text())
        assert config["agents"]["reviewer"]["provider"] == "openai"

    def test_bad_settings_file(self, claude_plugin: Path, tmp_path: Path) -> None:
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "config.yaml").write_text("default_model: [unclosed\n")

        result = run(tmp_path, "convert", str(claude_plugin), str(tmp_path / "out"))

        assert result.exit_code == 1
        assert "Invalid settings file" in result.output


class TestValidateCommand:
    def test_valid(self, claude_plugin: Path, tmp_path: Path) -> None:
        result = run(tmp_path, "validate", str(claude_plugin))

        assert result.exit_code == 0
        assert "✓ Valid plugin" in result.output

    def test_invalid(self, tmp_path: Path) -> None:
        plugin_dir = tmp_path / "broken"
        plugin_dir.mkdir()
        (plugin_dir / "opencode.json").write_text("{}")

        result = run(tmp_path, "validate", str(plugin_dir))

        assert result.exit_code == 1
        assert '"name" is required' in result.output


class TestDetectCommand:
    def test_detect(self, opencode_plugin: Path, tmp_path: Path) -> None:
        result = run(tmp_path, "detect", str(opencode_plugin))

        assert result.exit_code == 0
        assert result.output.strip() == "opencode"

    def test_undetectable(self, tmp_path: Path) -> None:
        plain = tmp_path / "plain"
        plain.mkdir()

        result = run(tmp_path, "detect", str(plain))

        assert result.exit_code == 1
