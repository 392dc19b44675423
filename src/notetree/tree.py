"""Tree assembly: flat node sets to nested, deterministically ordered forests."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from .errors import InvalidTransitionError, NodeNotFoundError

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Iterator

    from .models import Node


class DropPosition(StrEnum):
    """Where an item is dropped relative to the target row."""

    BEFORE = "before"
    ONTO = "onto"
    AFTER = "after"


@dataclass
class TreeNode:
    """A display node; ``children`` is None for leaves."""

    id: str
    name: str
    is_folder: bool
    parent_id: str | None = None
    is_trash_item: bool = False
    children: list[TreeNode] | None = field(default=None)

    @property
    def is_leaf(self) -> bool:
        """Leaves never expand."""
        return not self.is_folder

    def walk(self) -> Iterator[TreeNode]:
        """Yield this node and every attached descendant, pre-order."""
        yield self
        for child in self.children or ():
            yield from child.walk()


def sort_key(node: TreeNode) -> tuple[bool, str, str]:
    """Folders first, then case-insensitive name, then id."""
    return (not node.is_folder, node.name.casefold(), node.id)


def _to_tree_node(node: Node, *, is_trash_item: bool) -> TreeNode:
    return TreeNode(
        id=node.id,
        name=node.name,
        is_folder=node.is_folder,
        parent_id=node.parent_id,
        is_trash_item=is_trash_item,
        children=[] if node.is_folder else None,
    )


def _sort_forest(forest: list[TreeNode]) -> list[TreeNode]:
    forest.sort(key=sort_key)
    for node in forest:
        if node.children:
            _sort_forest(node.children)
    return forest


def build_tree(
    nodes: Iterable[Node],
    loaded_folders: Collection[str],
) -> list[TreeNode]:
    """Assemble the display forest for ``nodes``.

    A node is attached under its parent only when the parent is present and
    its id is in ``loaded_folders``; otherwise it is held back, so a folder
    never shows a partial child list it did not ask for. Root-level nodes
    always attach. Nodes whose parent is absent are omitted.

    Args:
        nodes: Known active nodes of one owner.
        loaded_folders: Ids of folders whose children have been fetched.

    Returns:
        Root-level display nodes, recursively sorted.

    """
    index = {node.id: _to_tree_node(node, is_trash_item=False) for node in nodes}
    forest: list[TreeNode] = []

    for tree_node in index.values():
        if tree_node.parent_id is None:
            forest.append(tree_node)
            continue
        if tree_node.parent_id not in loaded_folders:
            continue
        parent = index.get(tree_node.parent_id)
        if parent is not None and parent.children is not None:
            parent.children.append(tree_node)

    return _sort_forest(forest)


def build_trash_tree(trash: Iterable[Node]) -> list[TreeNode]:
    """Assemble the trash view.

    A trashed node whose parent is not itself in the trash appears at the top
    level (the flat Trash root); trashed subtrees nest as they were.
    """
    index = {node.id: _to_tree_node(node, is_trash_item=True) for node in trash}
    forest: list[TreeNode] = []

    for tree_node in index.values():
        parent = index.get(tree_node.parent_id) if tree_node.parent_id else None
        if parent is None or parent.children is None:
            forest.append(tree_node)
        else:
            parent.children.append(tree_node)

    return _sort_forest(forest)


def iter_forest(forest: Iterable[TreeNode]) -> Iterator[TreeNode]:
    """Pre-order traversal over a whole forest."""
    for root in forest:
        yield from root.walk()


def find_matching_nodes(forest: Iterable[TreeNode], term: str) -> list[str]:
    """Ids of display nodes whose name contains ``term`` (case-insensitive)."""
    needle = term.casefold()
    if not needle:
        return []
    return [node.id for node in iter_forest(forest) if needle in node.name.casefold()]


def resolve_drop_parent(
    forest: Iterable[TreeNode],
    target_id: str,
    position: DropPosition | str,
) -> str | None:
    """Work out the new parent for a drag and drop.

    Dropping onto a folder reparents under it. Dropping before or after a row
    reparents to that row's parent, which is None at the top level.

    Raises:
        NodeNotFoundError: ``target_id`` is not in the displayed forest.
        InvalidTransitionError: Dropping onto a leaf.

    """
    position = DropPosition(position)
    target = next((n for n in iter_forest(forest) if n.id == target_id), None)
    if target is None:
        raise NodeNotFoundError(target_id)

    if position is DropPosition.ONTO:
        if not target.is_folder:
            msg = "Notes cannot contain other notes"
            raise InvalidTransitionError(msg)
        return target.id
    return target.parent_id
