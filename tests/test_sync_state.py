"""Tests for sync state and fast fingerprints."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from plugin_convert.common import Direction
from plugin_convert.sync_state import (
    SYNC_STATE_FILE,
    SyncState,
    changed_components,
    fingerprint_components,
    fingerprint_path,
    load_sync_state,
    save_sync_state,
)


class TestSyncState:
    def test_save_and_load(self, tmp_path: Path) -> None:
        state = SyncState(
            last_sync_timestamp="2024-01-01T00:00:00+00:00",
            source_hash="abc",
            target_hash="def",
            direction=Direction.OPENCODE_TO_CLAUDE,
            component_hashes={"skills": "123"},
        )

        path = save_sync_state(tmp_path, state)

        assert path.name == SYNC_STATE_FILE
        assert load_sync_state(tmp_path) == state

    def test_missing_state(self, tmp_path: Path) -> None:
        assert load_sync_state(tmp_path) is None

    def test_unknown_direction(self, tmp_path: Path) -> None:
        (tmp_path / SYNC_STATE_FILE).write_text('{"direction": "sideways"}')

        with pytest.raises(ValueError):
            load_sync_state(tmp_path)


class TestFingerprint:
    def test_missing_path_is_empty(self, tmp_path: Path) -> None:
        assert fingerprint_path(tmp_path / "missing") == ""

    def test_stable_and_sensitive_to_size(self, tmp_path: Path) -> None:
        (tmp_path / "a.md").write_text("one")
        first = fingerprint_path(tmp_path)

        assert fingerprint_path(tmp_path) == first
        assert len(first) == 16

        (tmp_path / "a.md").write_text("three")
        assert fingerprint_path(tmp_path) != first

    def test_ignores_sync_state_and_git(self, tmp_path: Path) -> None:
        (tmp_path / "a.md").write_text("one")
        first = fingerprint_path(tmp_path)

        (tmp_path / SYNC_STATE_FILE).write_text("{}")
        (tmp_path / ".git").mkdir()
        (tmp_path / ".git" / "HEAD").write_text("ref")

        assert fingerprint_path(tmp_path) == first

    def test_same_size_and_mtime_goes_unnoticed(self, tmp_path: Path) -> None:
        target = tmp_path / "a.md"
        target.write_text("aaa")
        stat = target.stat()
        first = fingerprint_path(tmp_path)

        target.write_text("bbb")
        os.utime(target, ns=(stat.st_atime_ns, stat.st_mtime_ns))

        assert fingerprint_path(tmp_path) == first

    def test_components(self, tmp_path: Path) -> None:
        (tmp_path / "skills").mkdir()
        (tmp_path / "skills" / "s.md").write_text("x")

        hashes = fingerprint_components(tmp_path, ("skills", "commands"))

        assert hashes["commands"] == ""
        assert hashes["skills"]

    def test_changed_components(self) -> None:
        previous = {"skills": "a", "commands": "b", "agents": "c"}
        current = {"skills": "a", "commands": "x", "hooks": "d"}

        assert changed_components(previous, current) == ["commands", "hooks", "agents"]
