# tests/services/test_deletion_overlay.py
"""Tests for the per-user deletion overlay."""

from __future__ import annotations

from pathlib import Path

from chatchain.core.settings import Settings
from chatchain.services.deletion_overlay import DeletionOverlay


def test_hide_is_scoped_to_one_user(overlay: DeletionOverlay) -> None:
    overlay.hide("m1", "alice")

    assert overlay.is_hidden("m1", "alice")
    assert not overlay.is_hidden("m1", "bob")
    assert not overlay.is_hidden("m2", "alice")


def test_clear_restores_everything_for_that_user(overlay: DeletionOverlay) -> None:
    overlay.hide("m1", "alice")
    overlay.hide("m2", "alice")
    overlay.hide("m1", "bob")

    assert overlay.clear("alice") == 2

    assert overlay.hidden_for("alice") == frozenset()
    assert overlay.is_hidden("m1", "bob")
    assert overlay.clear("alice") == 0


def test_persists_independently(test_settings: Settings) -> None:
    first = DeletionOverlay(test_settings.deleted_messages_path)
    first.hide("m1", "alice")
    first.hide("m1", "alice")

    second = DeletionOverlay(test_settings.deleted_messages_path)

    assert second.hidden_for("alice") == frozenset({"m1"})
    assert not test_settings.messages_path.exists()


def test_unexpected_file_shape_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "deleted.json"
    path.write_text('["m1"]', encoding="utf-8")

    assert DeletionOverlay(path).hidden_for("alice") == frozenset()


def test_undecodable_file_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "deleted_messages.json"
    path.write_bytes(b"\xff\xfe\x00garbage")

    overlay = DeletionOverlay(path)

    assert overlay.hidden_for("alice") == frozenset()
