"""CLI for converting plugins between Claude Code and OpenCode."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import click

from plugin_convert.common import Direction, Mode, PluginConvertError
from plugin_convert.engine import ConversionEngine
from plugin_convert.settings import ConverterSettings, load_settings
from plugin_convert.validator import CLAUDE_CODE, FORMATS, OPENCODE, detect_plugin_format, validate_plugin


def resolve_direction(source: Path, direction: Optional[str]) -> Direction:
    """Use ``direction`` if given, otherwise infer it from the source layout.

    Raises:
        PluginConvertError: If the source format cannot be determined
    """
    if direction:
        return Direction(direction)

    detected = detect_plugin_format(source)
    if detected == CLAUDE_CODE:
        return Direction.CLAUDE_TO_OPENCODE
    if detected == OPENCODE:
        return Direction.OPENCODE_TO_CLAUDE
    raise PluginConvertError(f"Could not determine plugin format of {source}; pass --direction")


@click.group()
@click.version_option(package_name="plugin-convert")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option(
    "--config-home",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory holding config.yaml (defaults to ~/.config/plugin-convert)",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_home: Optional[Path]) -> None:
    """Convert plugins between Claude Code and OpenCode formats."""
    try:
        settings = load_settings(config_home)
    except PluginConvertError as e:
        click.secho(f"✗ {e}", fg="red")
        raise SystemExit(1)

    level = logging.DEBUG if verbose else getattr(logging, settings.log_level, logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    ctx.obj = settings


@main.command()
@click.argument("source", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument("output", type=click.Path(path_type=Path))
@click.option(
    "--direction",
    "-d",
    type=click.Choice([d.value for d in Direction]),
    default=None,
    help="Conversion direction (detected from SOURCE when omitted)",
)
@click.option(
    "--mode",
    "-m",
    type=click.Choice([m.value for m in Mode]),
    default=Mode.FULL.value,
    show_default=True,
    help="full rewrites OUTPUT, sync skips unchanged sources, diff only reports",
)
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_obj
def convert(
    settings: ConverterSettings,
    source: Path,
    output: Path,
    direction: Optional[str],
    mode: str,
    as_json: bool,
) -> None:
    """Convert the plugin at SOURCE into OUTPUT."""
    try:
        resolved = resolve_direction(source, direction)
    except PluginConvertError as e:
        click.secho(f"✗ {e}", fg="red")
        raise SystemExit(1)

    if not as_json:
        click.echo(f"Converting {source} ({resolved.value}, {mode})...")

    result = ConversionEngine(settings=settings).convert(source, output, resolved, mode)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    elif result.success:
        click.secho(str(result), fg="green")
    else:
        click.secho(str(result), fg="red")

    if not result.success:
        raise SystemExit(1)


@main.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option(
    "--format",
    "plugin_format",
    type=click.Choice(FORMATS),
    default=None,
    help="Plugin format (detected when omitted)",
)
def validate(path: Path, plugin_format: Optional[str]) -> None:
    """Validate a plugin directory."""
    click.echo(f"Validating plugin at {path}...")

    result = validate_plugin(path, plugin_format)

    if result.valid:
        click.secho(str(result), fg="green")
    else:
        click.secho(str(result), fg="red")
        raise SystemExit(1)


@main.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
def detect(path: Path) -> None:
    """Print the format of the plugin at PATH."""
    detected = detect_plugin_format(path)

    if detected is None:
        click.secho(f"✗ Could not determine plugin format of {path}", fg="red")
        raise SystemExit(1)

    click.echo(detected)


if __name__ == "__main__":
    main()
