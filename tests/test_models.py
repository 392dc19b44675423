"""Tests for the node model."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from notetree.models import Folder, Leaf, node_from_record

NOW = datetime(2026, 3, 1, tzinfo=UTC)


def _leaf(**overrides: object) -> Leaf:
    fields = {
        "id": "n1",
        "owner": "alice",
        "name": "Note",
        "created_at": NOW,
        "updated_at": NOW,
    }
    fields.update(overrides)
    return Leaf(**fields)


def test_record_round_trip_keeps_variant() -> None:
    """Folders and leaves come back as the same variant."""
    folder = Folder(id="f1", owner="alice", name="F", created_at=NOW, updated_at=NOW)
    leaf = _leaf(content="body", parent_id="f1")

    assert isinstance(node_from_record(folder.to_record()), Folder)
    restored = node_from_record(leaf.to_record())
    assert isinstance(restored, Leaf)
    assert restored == leaf


def test_record_exposes_is_folder_flag() -> None:
    """Serialized nodes carry the wire-compatible is_folder flag."""
    assert _leaf().to_record()["is_folder"] is False
    folder = Folder(id="f1", owner="alice", name="F", created_at=NOW, updated_at=NOW)
    assert folder.to_record()["is_folder"] is True


def test_record_without_kind_uses_is_folder() -> None:
    """Payloads that only say is_folder still resolve to the right variant."""
    record = _leaf().to_record()
    del record["kind"]
    record["is_folder"] = True
    record.pop("content")

    assert isinstance(node_from_record(record), Folder)


def test_name_is_trimmed_and_required() -> None:
    """Names are stripped and may not be blank."""
    assert _leaf(name="  Padded  ").name == "Padded"
    with pytest.raises(ValidationError):
        _leaf(name="   ")


def test_nodes_are_immutable() -> None:
    """Mutation goes through model_copy only."""
    leaf = _leaf()
    with pytest.raises(ValidationError):
        leaf.name = "Other"  # type: ignore[misc]

    renamed = leaf.model_copy(update={"name": "Other"})
    assert renamed.name == "Other"
    assert leaf.name == "Note"


def test_summary_hides_content_and_tags() -> None:
    """List views do not ship note bodies."""
    summary = _leaf(content="secret", tags=("a",)).summary()
    assert "content" not in summary
    assert "tags" not in summary
    assert summary["name"] == "Note"


def test_is_trashed_follows_deleted_at() -> None:
    assert not _leaf().is_trashed
    assert _leaf(deleted_at=NOW).is_trashed

