"""Line-oriented front-matter handling for markdown components.

Only a constrained key set is understood (``name``, ``description``,
``aliases``, ``parameters``); everything else stays in the body or is
ignored. Full YAML is deliberately not used so that values such as
``description: Run: the thing`` survive unchanged.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Optional

from plugin_convert.common import CommandParameter

_FRONTMATTER_RE = re.compile(r"^---[ \t]*\n(.*?)\n---[ \t]*(?:\n|$)(.*)$", re.DOTALL)
_KEY_RE = re.compile(r"^([A-Za-z_][\w-]*):\s*(.*)$")
_TRUE = {"true", "yes", "on"}
_FALSE = {"false", "no", "off"}
_QUOTE_PREFIXES = ("'", "\"", "[", "{", "#", "&", "*", "!", "|", ">", "%", "@", "`")
_LIST_ITEM_RE = re.compile(r"\s*(\"(?:[^\"\\]|\\.)*\"|'(?:[^']|'')*'|[^,]+)\s*(?:,|$)")


@dataclass
class FrontMatter:
    name: Optional[str] = None
    description: Optional[str] = None
    aliases: list[str] = field(default_factory=list)
    parameters: list[CommandParameter] = field(default_factory=list)
    scalars: dict[str, str] = field(default_factory=dict)


def split_frontmatter(content: str) -> tuple[Optional[str], str]:
    """Split markdown into (front-matter text, body); front-matter may be None."""
    match = _FRONTMATTER_RE.match(content)
    if match:
        return match.group(1), match.group(2)
    return None, content


def parse_frontmatter(text: str) -> FrontMatter:
    """Parse the known keys out of a front-matter block."""
    result = FrontMatter()
    block: Optional[str] = None
    current: Optional[dict] = None
    raw_params: list[dict] = []

    for raw in text.splitlines():
        if not raw.strip() or raw.lstrip().startswith("#"):
            continue

        indented = raw[0] in " \t" or raw.startswith("-")
        if block and indented:
            item = raw.strip()
            starts_item = item.startswith("-")
            if starts_item:
                item = item[1:].strip()

            if block == "aliases":
                if starts_item and item:
                    result.aliases.append(_unquote(item))
                continue

            # parameters
            if starts_item:
                current = {}
                raw_params.append(current)
            match = _KEY_RE.match(item)
            if match and current is not None:
                current[match.group(1)] = _unquote(match.group(2))
            continue

        block = None
        current = None
        match = _KEY_RE.match(raw)
        if not match:
            continue
        key, value = match.group(1), match.group(2).strip()

        if key == "name":
            result.name = _unquote(value)
        elif key == "description":
            result.description = _unquote(value)
        elif key == "aliases":
            if value:
                result.aliases = _parse_inline_list(value)
            else:
                block = "aliases"
        elif key == "parameters":
            if not value:
                block = "parameters"
        else:
            result.scalars[key] = _unquote(value)

    result.parameters = [_to_parameter(p) for p in raw_params if p.get("name")]
    return result


def render_command_frontmatter(
    name: str,
    description: str,
    aliases: list[str],
    parameters: list[CommandParameter],
) -> str:
    """Render command front-matter that ``parse_frontmatter`` reads back unchanged."""
    lines = ["---", f"name: {_quote(name)}"]
    if aliases:
        lines.append(f"aliases: [{', '.join(_quote(a, in_list=True) for a in aliases)}]")
    if description:
        lines.append(f"description: {_quote(description)}")
    if parameters:
        lines.append("parameters:")
        for param in parameters:
            lines.append(f"  - name: {_quote(param.name)}")
            lines.append(f"    type: {_quote(param.type)}")
            lines.append(f"    description: {_quote(param.description)}")
            if param.required is not None:
                lines.append(f"    required: {'true' if param.required else 'false'}")
    lines.append("---")
    return "\n".join(lines) + "\n"


def _to_parameter(data: dict) -> CommandParameter:
    required = data.get("required")
    flag: Optional[bool] = None
    if required is not None:
        lowered = required.lower()
        if lowered in _TRUE:
            flag = True
        elif lowered in _FALSE:
            flag = False
    return CommandParameter(
        name=data["name"],
        type=data.get("type") or "string",
        description=data.get("description", ""),
        required=flag,
    )


def _parse_inline_list(value: str) -> list[str]:
    value = value.strip()
    if value.startswith("[") and value.endswith("]"):
        value = value[1:-1]
    return [_unquote(part) for part in _LIST_ITEM_RE.findall(value) if part.strip()]


def _quote(value: str, in_list: bool = False) -> str:
    """Double-quote ``value`` when it would not survive as a bare scalar."""
    needs_quotes = (
        value != value.strip()
        or value[:1] in _QUOTE_PREFIXES
        or value[-1:] in ("'", '"')
        or any(c in value for c in "\n\r\t")
        or (in_list and any(c in value for c in ",[]"))
    )
    return json.dumps(value, ensure_ascii=False) if needs_quotes else value


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) < 2 or value[0] != value[-1] or value[0] not in ("'", '"'):
        return value
    if value[0] == "'":
        return value[1:-1].replace("''", "'")
    try:
        decoded = json.loads(value)
    except json.JSONDecodeError:
        return value[1:-1]
    return decoded if isinstance(decoded, str) else value[1:-1]
