"""Tests for tree assembly."""

from datetime import UTC, datetime

import pytest

from notetree.errors import InvalidTransitionError, NodeNotFoundError
from notetree.models import Folder, Leaf, Node
from notetree.tree import (
    DropPosition,
    TreeNode,
    build_trash_tree,
    build_tree,
    find_matching_nodes,
    resolve_drop_parent,
)

NOW = datetime(2026, 3, 1, tzinfo=UTC)


def _folder(node_id: str, name: str, parent_id: str | None = None) -> Folder:
    return Folder(
        id=node_id,
        owner="alice",
        name=name,
        parent_id=parent_id,
        created_at=NOW,
        updated_at=NOW,
    )


def _leaf(node_id: str, name: str, parent_id: str | None = None) -> Leaf:
    return Leaf(
        id=node_id,
        owner="alice",
        name=name,
        parent_id=parent_id,
        created_at=NOW,
        updated_at=NOW,
    )


def _names(forest: list[TreeNode]) -> list[str]:
    return [node.name for node in forest]


def test_children_attach_only_under_loaded_folders() -> None:
    """A child is held back until its folder has been loaded."""
    nodes: list[Node] = [_folder("p", "Projects"), _leaf("n", "Notes A", "p")]

    unloaded = build_tree(nodes, set())
    loaded = build_tree(nodes, {"p"})

    assert _names(unloaded) == ["Projects"]
    assert unloaded[0].children == []
    assert _names(loaded[0].children or []) == ["Notes A"]


def test_orphans_are_omitted() -> None:
    nodes: list[Node] = [_folder("p", "Projects"), _leaf("n", "Lost", "gone")]
    assert _names(build_tree(nodes, {"gone"})) == ["Projects"]


def test_sort_order_is_folders_first_then_name_then_id() -> None:
    nodes: list[Node] = [
        _leaf("l2", "beta"),
        _folder("f2", "Zeta"),
        _leaf("l1", "Alpha"),
        _folder("f1", "alpha"),
        _leaf("l0", "alpha"),
    ]

    forest = build_tree(nodes, set())

    assert [n.id for n in forest] == ["f1", "f2", "l0", "l1", "l2"]


def test_sorting_applies_recursively() -> None:
    nodes: list[Node] = [
        _folder("p", "P"),
        _leaf("b", "b", "p"),
        _folder("a", "a-folder", "p"),
        _leaf("c", "A", "p"),
    ]

    children = build_tree(nodes, {"p"})[0].children or []

    assert [n.id for n in children] == ["a", "c", "b"]


def test_display_nodes_describe_kind() -> None:
    folder, leaf = build_tree([_folder("f", "F"), _leaf("l", "L")], set())

    assert folder.is_folder
    assert not folder.is_leaf
    assert folder.children == []
    assert leaf.is_leaf
    assert leaf.children is None
    assert not leaf.is_trash_item


def test_trash_tree_nests_trashed_subtrees() -> None:
    """Trashed nodes whose parent is not in trash sit at the top level."""
    trash: list[Node] = [
        _folder("p", "Projects", "active-parent"),
        _leaf("n", "Notes A", "p"),
        _leaf("x", "Loose"),
    ]

    forest = build_trash_tree(trash)

    assert _names(forest) == ["Projects", "Loose"]
    assert _names(forest[0].children or []) == ["Notes A"]
    assert all(node.is_trash_item for node in forest)


def test_find_matching_nodes() -> None:
    forest = build_tree(
        [_folder("p", "Projects"), _leaf("n", "project notes", "p")],
        {"p"},
    )

    assert find_matching_nodes(forest, "PROJECT") == ["p", "n"]
    assert find_matching_nodes(forest, "") == []


def test_resolve_drop_parent() -> None:
    """Onto a folder reparents under it, before/after uses the row's parent."""
    forest = build_tree(
        [_folder("p", "Projects"), _leaf("n", "Notes", "p"), _leaf("r", "Root")],
        {"p"},
    )

    assert resolve_drop_parent(forest, "p", DropPosition.ONTO) == "p"
    assert resolve_drop_parent(forest, "n", "before") == "p"
    assert resolve_drop_parent(forest, "r", "after") is None
    with pytest.raises(InvalidTransitionError):
        resolve_drop_parent(forest, "n", "onto")
    with pytest.raises(NodeNotFoundError):
        resolve_drop_parent(forest, "missing", "onto")
