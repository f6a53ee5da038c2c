"""Bidirectional conversion between Claude Code and OpenCode plugins.

This package parses a plugin in one format, translates each component
(skills, commands, agents, hooks, MCP servers) to the other format, and
writes the result, reporting every lossy mapping as a warning.
"""

from plugin_convert.common import (
    ChangeRecord,
    ConversionResult,
    ConversionWarning,
    Direction,
    Mode,
    PluginConvertError,
    Severity,
)
from plugin_convert.claude_code import ClaudePlugin, parse_claude_plugin, serialize_claude_plugin
from plugin_convert.open_code import OpenCodePlugin, parse_opencode_plugin, serialize_opencode_plugin
from plugin_convert.engine import ConversionEngine, OverlayRequest, OverlayResult, convert
from plugin_convert.settings import ConverterSettings, load_settings
from plugin_convert.validator import ValidationResult, detect_plugin_format, validate_plugin

__version__ = "0.1.0"

__all__ = [
    "ChangeRecord",
    "ConversionResult",
    "ConversionWarning",
    "Direction",
    "Mode",
    "PluginConvertError",
    "Severity",
    "ClaudePlugin",
    "parse_claude_plugin",
    "serialize_claude_plugin",
    "OpenCodePlugin",
    "parse_opencode_plugin",
    "serialize_opencode_plugin",
    "ConversionEngine",
    "OverlayRequest",
    "OverlayResult",
    "convert",
    "ConverterSettings",
    "load_settings",
    "ValidationResult",
    "detect_plugin_format",
    "validate_plugin",
]
