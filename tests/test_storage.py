"""Tests for the fsspec-backed node store."""

from datetime import UTC, datetime, timedelta

import pytest

from notetree.errors import TransientStoreError
from notetree.models import Folder, Leaf
from notetree.storage import NodeStore
from notetree.utils import fs_join

BASE = datetime(2026, 3, 1, tzinfo=UTC)


def _folder(node_id: str, parent_id: str | None = None, **extra: object) -> Folder:
    return Folder(
        id=node_id,
        owner="alice",
        name=node_id.title(),
        parent_id=parent_id,
        created_at=BASE,
        updated_at=extra.pop("updated_at", BASE),  # type: ignore[arg-type]
        **extra,
    )


def test_put_and_get(memory_root: str) -> None:
    """A stored node reads back unchanged."""
    store = NodeStore(memory_root)
    folder = _folder("projects")
    store.put(folder)

    assert store.get("alice", "projects") == folder
    assert store.get("alice", "missing") is None


def test_get_is_owner_scoped(memory_root: str) -> None:
    """Another owner's partition never sees the node."""
    store = NodeStore(memory_root)
    store.put(_folder("projects"))

    assert store.get("bob", "projects") is None


def test_invalid_ids_read_as_absent(memory_root: str) -> None:
    """Ids that could escape the store directory never match a record."""
    store = NodeStore(memory_root)

    assert store.get("alice", "../etc") is None
    assert store.remove("alice", "a/b") is False


def test_remove(memory_root: str) -> None:
    store = NodeStore(memory_root)
    store.put(_folder("projects"))

    assert store.remove("alice", "projects") is True
    assert store.remove("alice", "projects") is False
    assert store.get("alice", "projects") is None


def test_find_filters_and_orders(memory_root: str) -> None:
    """find() filters by parent, trash state and kind, newest first."""
    store = NodeStore(memory_root)
    store.put(_folder("a", updated_at=BASE + timedelta(minutes=1)))
    store.put(_folder("b", updated_at=BASE + timedelta(minutes=2)))
    store.put(_folder("c", parent_id="a"))
    store.put(_folder("d", deleted_at=BASE))
    store.put(
        Leaf(
            id="e",
            owner="alice",
            name="E",
            parent_id="a",
            created_at=BASE,
            updated_at=BASE,
        ),
    )

    roots = store.find("alice", parent_id=None, trashed=False)
    assert [n.id for n in roots] == ["b", "a"]
    assert {n.id for n in store.find("alice", parent_id="a")} == {"c", "e"}
    assert [n.id for n in store.find("alice", trashed=True)] == ["d"]
    assert [n.id for n in store.find("alice", is_folder=False)] == ["e"]


def test_corrupt_record_is_skipped_in_listings(memory_root: str) -> None:
    """Listings survive a corrupt record; direct reads report it."""
    store = NodeStore(memory_root)
    store.put(_folder("good"))
    bad_path = fs_join(store.root, "owners", "alice", "nodes", "bad.json")
    with store.fs.open(bad_path, "w") as handle:
        handle.write("{not json")

    assert [n.id for n in store.iter_nodes("alice")] == ["good"]
    with pytest.raises(TransientStoreError):
        store.get("alice", "bad")


def test_unknown_owner_lists_nothing(memory_root: str) -> None:
    store = NodeStore(memory_root)
    assert store.find("nobody") == []
