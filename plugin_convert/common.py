"""Types shared by both plugin formats and the conversion engine."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


class PluginConvertError(Exception):
    """Base error for plugin-convert."""


class Direction(str, Enum):
    CLAUDE_TO_OPENCODE = "claude-to-opencode"
    OPENCODE_TO_CLAUDE = "opencode-to-claude"


class Mode(str, Enum):
    FULL = "full"
    SYNC = "sync"
    DIFF = "diff"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ChangeType(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"


class Transport(str, Enum):
    STDIO = "stdio"
    HTTP = "http"
    WEBSOCKET = "websocket"


CLAUDE_ROOT_PLACEHOLDER = "${CLAUDE_PLUGIN_ROOT}"
OPENCODE_ROOT_PLACEHOLDER = "${OPENCODE_PLUGIN_ROOT}"


# ── Hook actions ─────────────────────────────────────────────────────


@dataclass
class CommandAction:
    """Shell command run when a hook fires."""

    command: str
    timeout: Optional[float] = None


@dataclass
class HandlerAction:
    """Reference to a code module that handles the hook event."""

    handler: str
    timeout: Optional[float] = None


HookAction = Union[CommandAction, HandlerAction]


# ── Commands ─────────────────────────────────────────────────────────


@dataclass
class CommandParameter:
    name: str
    type: str = "string"
    description: str = ""
    required: Optional[bool] = None

    def to_dict(self) -> dict:
        data: dict = {"name": self.name, "type": self.type, "description": self.description}
        if self.required is not None:
            data["required"] = self.required
        return data

    @classmethod
    def from_dict(cls, data: dict) -> CommandParameter:
        required = data.get("required")
        return cls(
            name=str(data.get("name", "")),
            type=str(data.get("type", "string")),
            description=str(data.get("description", "")),
            required=bool(required) if required is not None else None,
        )


# ── Hook event table ─────────────────────────────────────────────────


@dataclass(frozen=True)
class HookEventMapping:
    claude_code: str
    open_code: str
    description: str
    bidirectional: bool


HOOK_EVENT_MAPPINGS: tuple[HookEventMapping, ...] = (
    HookEventMapping("PreToolUse", "beforeTool", "Fires before a tool is invoked", True),
    HookEventMapping("PostToolUse", "afterTool", "Fires after a tool completes successfully", True),
    HookEventMapping("PostToolUseFailure", "afterToolError", "Fires after a tool execution fails", True),
    HookEventMapping("UserPromptSubmit", "beforePrompt", "Fires before processing user input", True),
    HookEventMapping("SessionStart", "sessionStart", "Fires at session initialization", True),
    HookEventMapping("SessionEnd", "sessionEnd", "Fires when session ends", True),
    HookEventMapping("Notification", "notification", "Fires on system notifications", True),
    HookEventMapping("TeammateIdle", "idle", "Fires when an agent/teammate becomes idle", True),
    HookEventMapping("TaskCompleted", "taskComplete", "Fires when a task is marked complete", True),
    HookEventMapping("PermissionRequest", "permissionCheck", "Fires when tool permission is requested", True),
    HookEventMapping("PreCompact", "beforeCompact", "Fires before context compaction", True),
    HookEventMapping("Compact", "afterCompact", "Fires after context compaction", True),
    HookEventMapping(
        "Stop", "sessionEnd", "Fires during shutdown (mapped to sessionEnd in OpenCode)", False
    ),
)

CLAUDE_HOOK_EVENTS = frozenset(m.claude_code for m in HOOK_EVENT_MAPPINGS)
OPENCODE_HOOK_EVENTS = frozenset(m.open_code for m in HOOK_EVENT_MAPPINGS) | {"afterPrompt"}


def lookup_hook_event(event: str, direction: Direction) -> Optional[HookEventMapping]:
    """Find the table row translating ``event`` in the given direction.

    When several rows share the same source event, bidirectional rows win.
    """
    if direction is Direction.CLAUDE_TO_OPENCODE:
        candidates = [m for m in HOOK_EVENT_MAPPINGS if m.claude_code == event]
    else:
        candidates = [m for m in HOOK_EVENT_MAPPINGS if m.open_code == event]

    if not candidates:
        return None
    candidates.sort(key=lambda m: not m.bidirectional)
    return candidates[0]


# ── Conversion results ───────────────────────────────────────────────


@dataclass
class ConversionWarning:
    severity: Severity
    component: str
    message: str
    suggestion: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "severity": self.severity.value,
            "component": self.component,
            "message": self.message,
        }
        if self.suggestion:
            data["suggestion"] = self.suggestion
        return data


def info(component: str, message: str, suggestion: Optional[str] = None) -> ConversionWarning:
    return ConversionWarning(Severity.INFO, component, message, suggestion)


def warning(component: str, message: str, suggestion: Optional[str] = None) -> ConversionWarning:
    return ConversionWarning(Severity.WARNING, component, message, suggestion)


def error(component: str, message: str, suggestion: Optional[str] = None) -> ConversionWarning:
    return ConversionWarning(Severity.ERROR, component, message, suggestion)


@dataclass
class ChangeRecord:
    type: ChangeType
    component: str
    description: str
    source_path: Optional[str] = None
    target_path: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"type": self.type.value, "component": self.component}
        if self.source_path:
            data["sourcePath"] = self.source_path
        if self.target_path:
            data["targetPath"] = self.target_path
        data["description"] = self.description
        return data


@dataclass
class ConversionResult:
    """Outcome of a single ``convert`` call."""

    direction: Direction
    mode: Mode
    output_path: Path
    warnings: list[ConversionWarning] = field(default_factory=list)
    changes_applied: list[ChangeRecord] = field(default_factory=list)
    timestamp: str = field(default_factory=lambda: utc_now())

    @property
    def success(self) -> bool:
        return not any(w.severity is Severity.ERROR for w in self.warnings)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "direction": self.direction.value,
            "mode": self.mode.value,
            "outputPath": str(self.output_path),
            "warnings": [w.to_dict() for w in self.warnings],
            "changesApplied": [c.to_dict() for c in self.changes_applied],
            "timestamp": self.timestamp,
        }

    def __str__(self) -> str:
        status = "✓ Conversion complete" if self.success else "✗ Conversion failed"
        parts = [f"{status} ({self.direction.value}, {self.mode.value})"]
        if self.changes_applied:
            parts.append("Changes:")
            for change in self.changes_applied:
                parts.append(f"  {change.type.value:<8} [{change.component}] {change.description}")
        if self.warnings:
            parts.append("Warnings:")
            for w in self.warnings:
                parts.append(f"  {w.severity.value.upper()} [{w.component}] {w.message}")
                if w.suggestion:
                    parts.append(f"    Suggestion: {w.suggestion}")
        return "\n".join(parts)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def compact(data: dict) -> dict:
    """Drop keys whose value is None or an empty string/list/dict."""
    return {k: v for k, v in data.items() if v is not None and v != "" and v != [] and v != {}}


# ── File helpers shared by parsers and serializers ───────────────────


def load_json_file(
    path: Path, component: str, warnings: list[ConversionWarning]
) -> Optional[dict]:
    """Load a JSON object from ``path``.

    Missing files return None silently; unreadable or non-object files
    return None and append a warning.
    """
    if not path.is_file():
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("Skipping malformed %s: %s", path, e)
        warnings.append(warning(component, f"Skipped malformed {path.name}: {e}"))
        return None

    if not isinstance(data, dict):
        warnings.append(warning(component, f"Skipped {path.name}: expected a JSON object"))
        return None
    return data


def read_text_file(
    path: Path, component: str, warnings: list[ConversionWarning]
) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Skipping unreadable %s: %s", path, e)
        warnings.append(warning(component, f"Skipped unreadable file {path.name}: {e}"))
        return None


def list_field(
    value: object, component: str, label: str, warnings: list[ConversionWarning]
) -> list:
    """Return ``value`` if it is a list; otherwise warn and return []."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    warnings.append(warning(component, f"Ignored {label}: expected a list"))
    return []


def string_map(
    value: object, component: str, label: str, warnings: list[ConversionWarning]
) -> dict[str, str]:
    """Return ``value`` as a str -> str dict; a non-object warns and yields {}."""
    if value is None:
        return {}
    if isinstance(value, dict):
        return {str(k): str(v) for k, v in value.items()}
    warnings.append(warning(component, f"Ignored {label}: expected an object"))
    return {}


def is_safe_name(name: object) -> bool:
    """True when ``name`` can be used as a single file or directory name."""
    return (
        isinstance(name, str)
        and bool(name.strip())
        and "/" not in name
        and "\\" not in name
        and ".." not in name
        and name != "."
    )


def checked_name(
    name: Optional[str],
    fallback: Optional[str],
    component: str,
    warnings: list[ConversionWarning],
) -> Optional[str]:
    """Return ``name`` if it is safe to write to disk, else ``fallback``.

    Returns None when neither is usable; the caller skips the entry.
    """
    if not name:
        return fallback
    if is_safe_name(name):
        return name
    replacement = fallback if is_safe_name(fallback) else None
    if replacement is None:
        warnings.append(warning(component, f'Skipped entry with unsafe name "{name}"'))
    else:
        warnings.append(
            warning(component, f'Name "{name}" is not a valid file name; using "{replacement}"')
        )
    return replacement


def write_json(path: Path, data: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
