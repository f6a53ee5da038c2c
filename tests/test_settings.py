"""Tests for user settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from plugin_convert.common import PluginConvertError
from plugin_convert.settings import ConverterSettings, get_settings_path, load_settings, save_settings
from plugin_convert.translator import DEFAULT_AGENT_MODEL, DEFAULT_AGENT_PROVIDER


class TestSettings:
    def test_defaults_when_missing(self, tmp_path: Path) -> None:
        settings = load_settings(tmp_path)

        assert settings.default_provider == DEFAULT_AGENT_PROVIDER
        assert settings.default_model == DEFAULT_AGENT_MODEL
        assert settings.log_level == "WARNING"

    def test_save_and_load(self, tmp_path: Path) -> None:
        config_home = tmp_path / "config"
        path = save_settings(ConverterSettings("openai", "gpt-4o", "debug"), config_home)

        assert path == get_settings_path(config_home)
        settings = load_settings(config_home)
        assert settings == ConverterSettings("openai", "gpt-4o", "DEBUG")

    def test_partial_file_keeps_defaults(self, tmp_path: Path) -> None:
        (tmp_path / "config.yaml").write_text("default_model: local-llama\n")

        settings = load_settings(tmp_path)

        assert settings.default_model == "local-llama"
        assert settings.default_provider == DEFAULT_AGENT_PROVIDER

    def test_malformed_yaml(self, tmp_path: Path) -> None:
        (tmp_path / "config.yaml").write_text("default_model: [unclosed\n")

        with pytest.raises(PluginConvertError):
            load_settings(tmp_path)

    def test_non_mapping(self, tmp_path: Path) -> None:
        (tmp_path / "config.yaml").write_text("- a\n- b\n")

        with pytest.raises(PluginConvertError):
            load_settings(tmp_path)
