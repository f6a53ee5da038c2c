"""Track the last successful conversion in a sidecar inside the output directory.

Change detection uses a *fast fingerprint*: a digest of each file's relative
path, modification time and size. It never reads file contents, so an edit
that restores both mtime and size (touch-and-revert) goes unnoticed. Sync
mode treats a fingerprint change as "probably changed" and reconverts.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from plugin_convert.common import Direction, utc_now, write_json

logger = logging.getLogger(__name__)

SYNC_STATE_FILE = ".plugin-sync-state.json"

_EXCLUDED_NAMES = {SYNC_STATE_FILE, ".git"}


@dataclass
class SyncState:
    """Fingerprints recorded after the last successful conversion."""

    last_sync_timestamp: str
    source_hash: str
    target_hash: str
    direction: Direction
    component_hashes: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "lastSyncTimestamp": self.last_sync_timestamp,
            "sourceHash": self.source_hash,
            "targetHash": self.target_hash,
            "direction": self.direction.value,
            "componentHashes": self.component_hashes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> SyncState:
        """Create from dictionary.

        Raises:
            ValueError: If the direction is missing or unknown
        """
        return cls(
            last_sync_timestamp=str(data.get("lastSyncTimestamp", "")),
            source_hash=str(data.get("sourceHash", "")),
            target_hash=str(data.get("targetHash", "")),
            direction=Direction(data.get("direction")),
            component_hashes={
                str(k): str(v) for k, v in (data.get("componentHashes") or {}).items()
            },
        )


def get_state_path(output_path: Path) -> Path:
    """Get path to the sync-state sidecar for an output directory."""
    return Path(output_path) / SYNC_STATE_FILE


def load_sync_state(output_path: Path) -> Optional[SyncState]:
    """Read the sync state stored in ``output_path``.

    Args:
        output_path: Conversion output directory

    Returns:
        The stored state, or None when no sidecar exists

    Raises:
        ValueError: If the sidecar exists but cannot be parsed
    """
    state_path = get_state_path(output_path)
    if not state_path.is_file():
        return None

    with open(state_path, encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Malformed sync state in {state_path}")
    return SyncState.from_dict(data)


def save_sync_state(output_path: Path, state: SyncState) -> Path:
    """Write ``state`` to the sidecar in ``output_path`` and return its path."""
    state_path = get_state_path(output_path)
    write_json(state_path, state.to_dict())
    logger.debug("Saved sync state to %s", state_path)
    return state_path


def create_sync_state(
    source_path: Path,
    output_path: Path,
    direction: Direction,
    component_paths: Iterable[str],
) -> SyncState:
    """Fingerprint both trees as they are right now."""
    return SyncState(
        last_sync_timestamp=utc_now(),
        source_hash=fingerprint_path(source_path),
        target_hash=fingerprint_path(output_path),
        direction=direction,
        component_hashes=fingerprint_components(source_path, component_paths),
    )


# ── Fast fingerprints ────────────────────────────────────────────────


def fingerprint_path(path: Path) -> str:
    """Fast fingerprint of a file or directory tree.

    Returns an empty string when ``path`` does not exist, so a component
    appearing or disappearing is distinguishable from one being edited.
    """
    path = Path(path)
    if not path.exists():
        return ""

    digest = hashlib.sha256()
    if path.is_file():
        files = [path]
        base = path.parent
    else:
        files = sorted(p for p in path.rglob("*") if p.is_file())
        base = path

    for file in files:
        relative = file.relative_to(base)
        if _EXCLUDED_NAMES.intersection(relative.parts):
            continue
        stat = file.stat()
        digest.update(f"{relative.as_posix()}:{stat.st_mtime_ns}:{stat.st_size}\n".encode())

    return digest.hexdigest()[:16]


def fingerprint_components(root: Path, component_paths: Iterable[str]) -> dict[str, str]:
    """Fingerprint each component-bearing path under ``root``."""
    return {component: fingerprint_path(Path(root) / component) for component in component_paths}


def changed_components(previous: dict[str, str], current: dict[str, str]) -> list[str]:
    """Components whose fingerprint differs between two snapshots."""
    names = list(current) + [name for name in previous if name not in current]
    return [name for name in names if previous.get(name, "") != current.get(name, "")]
