"""User settings in ~/.config/plugin-convert/config.yaml."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from plugin_convert.common import PluginConvertError
from plugin_convert.translator import DEFAULT_AGENT_MODEL, DEFAULT_AGENT_PROVIDER

logger = logging.getLogger(__name__)


@dataclass
class ConverterSettings:
    """Defaults applied where the source format carries no value."""

    default_provider: str = DEFAULT_AGENT_PROVIDER
    default_model: str = DEFAULT_AGENT_MODEL
    log_level: str = "WARNING"

    def to_dict(self) -> dict:
        """Convert to dictionary for YAML serialization."""
        return {
            "default_provider": self.default_provider,
            "default_model": self.default_model,
            "log_level": self.log_level,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ConverterSettings:
        """Create from dictionary, keeping defaults for absent keys."""
        defaults = cls()
        return cls(
            default_provider=str(data.get("default_provider") or defaults.default_provider),
            default_model=str(data.get("default_model") or defaults.default_model),
            log_level=str(data.get("log_level") or defaults.log_level).upper(),
        )


def get_settings_path(config_home: Optional[Path] = None) -> Path:
    """Get path to config.yaml."""
    if config_home is None:
        config_home = Path.home() / ".config" / "plugin-convert"
    return config_home / "config.yaml"


def load_settings(config_home: Optional[Path] = None) -> ConverterSettings:
    """Read settings, falling back to defaults when no file exists.

    Args:
        config_home: Directory holding config.yaml (defaults to ~/.config/plugin-convert)

    Returns:
        The loaded settings

    Raises:
        PluginConvertError: If config.yaml is not valid YAML or not a mapping
    """
    settings_path = get_settings_path(config_home)

    if not settings_path.exists():
        return ConverterSettings()

    try:
        with open(settings_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise PluginConvertError(f"Invalid settings file {settings_path}: {e}") from e

    if not isinstance(data, dict):
        raise PluginConvertError(f"Invalid settings file {settings_path}: expected a mapping")

    logger.debug("Loaded settings from %s", settings_path)
    return ConverterSettings.from_dict(data)


def save_settings(settings: ConverterSettings, config_home: Optional[Path] = None) -> Path:
    """Write settings to config.yaml and return its path."""
    settings_path = get_settings_path(config_home)
    settings_path.parent.mkdir(parents=True, exist_ok=True)
    with open(settings_path, "w", encoding="utf-8") as f:
        yaml.dump(settings.to_dict(), f, default_flow_style=False, sort_keys=False)
    return settings_path
