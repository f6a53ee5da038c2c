"""Run a conversion between the Claude Code and OpenCode plugin formats.

A run is parse -> convert every component -> serialize -> record sync
state. Warnings from each stage are returned values folded into one
``ConversionResult``; the engine holds no per-run state, so one instance
can serve concurrent conversions into different output directories.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, TypeVar, Union

from plugin_convert import claude_code, open_code, translator
from plugin_convert.claude_code import ClaudePlugin, parse_claude_plugin, serialize_claude_plugin
from plugin_convert.common import (
    ChangeRecord,
    ChangeType,
    ConversionResult,
    ConversionWarning,
    Direction,
    Mode,
    error,
    info,
    warning,
)
from plugin_convert.open_code import OpenCodePlugin, parse_opencode_plugin, serialize_opencode_plugin
from plugin_convert.settings import ConverterSettings
from plugin_convert.sync_state import (
    changed_components,
    create_sync_state,
    fingerprint_components,
    fingerprint_path,
    load_sync_state,
    save_sync_state,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
PluginModel = Union[ClaudePlugin, OpenCodePlugin]


@dataclass
class OverlayRequest:
    """What an enhanced-conversion overlay gets to look at and modify."""

    direction: Direction
    source_path: Path
    output_path: Path
    components: list[str]
    model: PluginModel


@dataclass
class OverlayResult:
    warnings: list[ConversionWarning] = field(default_factory=list)
    changes: list[ChangeRecord] = field(default_factory=list)


Overlay = Callable[[OverlayRequest], Optional[OverlayResult]]


# (source attribute, source path, target tag, target path) per direction
_CLAUDE_TO_OPENCODE_COMPONENTS = (
    ("skills", "skills/", "instructions", "instructions/"),
    ("commands", "commands/", "commands", "commands/"),
    ("agents", "agents/", "agents", ".opencode/agents/"),
    ("hooks", "hooks/hooks.json", "hooks", "opencode.json"),
    ("mcp_servers", ".mcp.json", "mcpServers", "opencode.json"),
)
_OPENCODE_TO_CLAUDE_COMPONENTS = (
    ("instructions", "instructions/", "skills", "skills/"),
    ("commands", "commands/", "commands", "commands/"),
    ("agents", ".opencode/agents/", "agents", "agents/"),
    ("hooks", "opencode.json", "hooks", "hooks/hooks.json"),
    ("mcp_servers", "opencode.json", "mcpServers", ".mcp.json"),
)


class ConversionEngine:
    """Convert plugin directories in full, sync, or diff mode."""

    def __init__(
        self,
        settings: Optional[ConverterSettings] = None,
        overlay: Optional[Overlay] = None,
    ) -> None:
        self.settings = settings or ConverterSettings()
        self.overlay = overlay

    def convert(
        self,
        source_path: Path,
        output_path: Path,
        direction: Union[Direction, str],
        mode: Union[Mode, str] = Mode.FULL,
    ) -> ConversionResult:
        """Convert the plugin at ``source_path`` into ``output_path``.

        Args:
            source_path: Plugin directory in the source format
            output_path: Directory receiving the converted plugin
            direction: ``claude-to-opencode`` or ``opencode-to-claude``
            mode: ``full``, ``sync`` or ``diff``

        Returns:
            ConversionResult with every warning and change record of the run.
            Unusable input or an unwritable output is reported as an error
            warning rather than raised.
        """
        direction = Direction(direction)
        mode = Mode(mode)
        source = Path(source_path).resolve()
        output = Path(output_path).resolve()
        result = ConversionResult(direction=direction, mode=mode, output_path=output)

        logger.info("Converting %s -> %s (%s, %s)", source, output, direction.value, mode.value)
        try:
            if mode is Mode.DIFF:
                self._diff(source, output, direction, result)
            elif mode is Mode.SYNC:
                self._sync(source, output, direction, result)
            else:
                self._full(source, output, direction, result)
        except (OSError, ValueError) as e:
            logger.error("Conversion of %s failed: %s", source, e)
            result.warnings.append(
                error(
                    "engine",
                    f"Conversion failed: {e}",
                    "Check that the source is a plugin directory and the output is writable",
                )
            )

        return result

    # ── Modes ────────────────────────────────────────────────────────

    def _full(
        self,
        source: Path,
        output: Path,
        direction: Direction,
        result: ConversionResult,
        record_changes: bool = True,
    ) -> None:
        model = _parse(source, direction)
        result.warnings.extend(model.warnings)

        target, warnings = self._build_target(model, output, direction)
        result.warnings.extend(warnings)

        components = _target_components(target, direction)
        if record_changes:
            result.changes_applied.append(
                ChangeRecord(
                    type=ChangeType.ADDED,
                    component="plugin",
                    description=f'Converted plugin "{_model_name(target)}"',
                    source_path=str(source),
                    target_path=str(output),
                )
            )
            result.changes_applied.extend(_component_changes(model, direction, output))

        if self.overlay is not None:
            target = self._apply_overlay(source, output, direction, components, target, result)

        output.mkdir(parents=True, exist_ok=True)
        if direction is Direction.CLAUDE_TO_OPENCODE:
            serialize_opencode_plugin(target, output)
        else:
            serialize_claude_plugin(target, output)

        save_sync_state(output, create_sync_state(source, output, direction, _source_paths(direction)))
        logger.info("Wrote %s plugin to %s", _target_format(direction), output)

    def _sync(
        self, source: Path, output: Path, direction: Direction, result: ConversionResult
    ) -> None:
        state = load_sync_state(output)
        if state is None:
            logger.info("No sync state in %s; running full conversion", output)
            result.warnings.append(
                info("sync", "No previous sync state found; performing full conversion")
            )
            self._full(source, output, direction, result)
            return

        if state.direction is not direction:
            logger.info("Stored sync direction %s differs; running full conversion", state.direction.value)
            result.warnings.append(
                info(
                    "sync",
                    f"Previous sync ran {state.direction.value}; performing full conversion",
                )
            )
            self._full(source, output, direction, result)
            return

        if fingerprint_path(source) == state.source_hash:
            logger.info("Source %s unchanged since %s", source, state.last_sync_timestamp)
            result.warnings.append(info("sync", "No changes detected since last sync"))
            return

        current = fingerprint_components(source, _source_paths(direction))
        changed = changed_components(state.component_hashes, current)
        if not changed:
            result.warnings.append(
                info("sync", "Source changed outside plugin components; sync state refreshed")
            )
            save_sync_state(output, create_sync_state(source, output, direction, _source_paths(direction)))
            return

        for component in changed:
            before, after = state.component_hashes.get(component, ""), current.get(component, "")
            if not before:
                change_type, verb = ChangeType.ADDED, "added"
            elif not after:
                change_type, verb = ChangeType.REMOVED, "removed"
            else:
                change_type, verb = ChangeType.MODIFIED, "modified"
            result.changes_applied.append(
                ChangeRecord(
                    type=change_type,
                    component=component,
                    description=f"{component} {verb} since last sync",
                    source_path=str(source / component),
                )
            )
        logger.info("Changed components: %s", ", ".join(changed))

        # Every component is reconverted; the per-component diff only drives the change records.
        self._full(source, output, direction, result, record_changes=False)

    def _diff(
        self, source: Path, output: Path, direction: Direction, result: ConversionResult
    ) -> None:
        model = _parse(source, direction)
        result.warnings.extend(model.warnings)
        result.changes_applied.extend(_component_changes(model, direction, output))

    # ── Assembly ─────────────────────────────────────────────────────

    def _build_target(
        self, model: PluginModel, output: Path, direction: Direction
    ) -> tuple[PluginModel, list[ConversionWarning]]:
        if direction is Direction.CLAUDE_TO_OPENCODE:
            return self._to_opencode(model, output)  # type: ignore[arg-type]
        return self._to_claude(model, output)  # type: ignore[arg-type]

    def _to_opencode(
        self, plugin: ClaudePlugin, output: Path
    ) -> tuple[OpenCodePlugin, list[ConversionWarning]]:
        warnings: list[ConversionWarning] = []
        config = _collect(warnings, translator.translate_manifest_to_opencode(plugin.manifest, plugin.env))
        target = OpenCodePlugin(
            root=output,
            config=config,
            instructions=_collect(warnings, translator.translate_skills_to_opencode(plugin.skills)),
            commands=_collect(warnings, translator.translate_commands_to_opencode(plugin.commands)),
            hooks=_collect(warnings, translator.translate_hooks_to_opencode(plugin.hooks)),
            mcp_servers=_collect(warnings, translator.translate_mcp_to_opencode(plugin.mcp_servers)),
            agents=_collect(
                warnings,
                translator.translate_agents_to_opencode(
                    plugin.agents,
                    provider=self.settings.default_provider,
                    model=self.settings.default_model,
                ),
            ),
        )
        return target, warnings

    def _to_claude(
        self, plugin: OpenCodePlugin, output: Path
    ) -> tuple[ClaudePlugin, list[ConversionWarning]]:
        warnings: list[ConversionWarning] = []
        manifest, env, manifest_warnings = translator.translate_manifest_to_claude(plugin.config)
        warnings.extend(manifest_warnings)
        target = ClaudePlugin(
            root=output,
            manifest=manifest,
            skills=_collect(warnings, translator.translate_instructions_to_claude(plugin.instructions)),
            commands=_collect(warnings, translator.translate_commands_to_claude(plugin.commands)),
            agents=_collect(warnings, translator.translate_agents_to_claude(plugin.agents)),
            hooks=_collect(warnings, translator.translate_hooks_to_claude(plugin.hooks)),
            mcp_servers=_collect(warnings, translator.translate_mcp_to_claude(plugin.mcp_servers)),
            env=env,
        )
        return target, warnings

    def _apply_overlay(
        self,
        source: Path,
        output: Path,
        direction: Direction,
        components: list[str],
        target: PluginModel,
        result: ConversionResult,
    ) -> PluginModel:
        request = OverlayRequest(
            direction=direction,
            source_path=source,
            output_path=output,
            components=components,
            model=copy.deepcopy(target),
        )
        try:
            extra = self.overlay(request)  # type: ignore[misc]
        except Exception as e:
            logger.warning("Enhanced conversion overlay failed: %s", e)
            result.warnings.append(
                warning("overlay", f"Enhanced conversion failed: {e}", "The standard conversion output was written instead")
            )
            return target

        if extra is not None:
            result.warnings.extend(extra.warnings)
            result.changes_applied.extend(extra.changes)
        return request.model


def convert(
    source_path: Path,
    output_path: Path,
    direction: Union[Direction, str],
    mode: Union[Mode, str] = Mode.FULL,
) -> ConversionResult:
    """Convert with default settings and no overlay."""
    return ConversionEngine().convert(source_path, output_path, direction, mode)


# ── Helpers ──────────────────────────────────────────────────────────


def _collect(warnings: list[ConversionWarning], pair: tuple[T, list[ConversionWarning]]) -> T:
    value, new_warnings = pair
    warnings.extend(new_warnings)
    return value


def _parse(source: Path, direction: Direction) -> PluginModel:
    if direction is Direction.CLAUDE_TO_OPENCODE:
        return parse_claude_plugin(source)
    return parse_opencode_plugin(source)


def _source_paths(direction: Direction) -> tuple[str, ...]:
    if direction is Direction.CLAUDE_TO_OPENCODE:
        return claude_code.COMPONENT_PATHS
    return open_code.COMPONENT_PATHS


def _target_format(direction: Direction) -> str:
    return "OpenCode" if direction is Direction.CLAUDE_TO_OPENCODE else "Claude Code"


def _model_name(model: PluginModel) -> str:
    if isinstance(model, ClaudePlugin):
        return model.manifest.name
    return model.config.name


def _count(model: PluginModel, attribute: str) -> int:
    value = getattr(model, attribute)
    if attribute == "hooks":
        if isinstance(value, dict):
            return sum(len(m.hooks) for matchers in value.values() for m in matchers)
        return len(value)
    return len(value)


def _component_changes(
    model: PluginModel, direction: Direction, output: Path
) -> list[ChangeRecord]:
    """One record per non-empty source component, named by its target tag."""
    table = (
        _CLAUDE_TO_OPENCODE_COMPONENTS
        if direction is Direction.CLAUDE_TO_OPENCODE
        else _OPENCODE_TO_CLAUDE_COMPONENTS
    )
    changes = []
    for attribute, source_rel, tag, target_rel in table:
        count = _count(model, attribute)
        if not count:
            continue
        exists = (output / target_rel).exists()
        changes.append(
            ChangeRecord(
                type=ChangeType.MODIFIED if exists else ChangeType.ADDED,
                component=tag,
                description=f"{count} {attribute.replace('_', ' ')} -> {tag}",
                source_path=source_rel,
                target_path=target_rel,
            )
        )
    return changes


def _target_components(model: PluginModel, direction: Direction) -> list[str]:
    table = (
        _CLAUDE_TO_OPENCODE_COMPONENTS
        if direction is Direction.CLAUDE_TO_OPENCODE
        else _OPENCODE_TO_CLAUDE_COMPONENTS
    )
    tags = []
    for _, _, tag, _ in table:
        attribute = "mcp_servers" if tag == "mcpServers" else tag
        if _count(model, attribute):
            tags.append(tag)
    return tags
