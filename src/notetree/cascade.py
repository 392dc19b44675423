"""Cascade engine: descendant closure plus uniform lifecycle transitions.

One algorithm serves both sides. :class:`CascadeEngine` runs it against the
authoritative :class:`~notetree.storage.NodeStore`; the ``mirror_*``
functions run it over whatever nodes the client cache happens to know.
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from .errors import (
    InvalidTransitionError,
    PartialCascadeFailureError,
    TransientStoreError,
)
from .utils import utcnow

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from datetime import datetime

    from .models import Node
    from .storage import NodeStore

    ChildLookup = Callable[[str], Iterable[Node]]

logger = logging.getLogger(__name__)


class Transition(StrEnum):
    """Lifecycle transitions that cascade to descendants."""

    SOFT_DELETE = "soft_delete"
    RESTORE = "restore"
    PURGE = "purge"


def descendant_closure(target_id: str, children_of: ChildLookup) -> list[Node]:
    """Return every node reachable below ``target_id``, breadth first.

    A node met twice (only possible when the tree already contains a cycle)
    is logged and skipped.

    Args:
        target_id: Root of the subtree; it is not part of the result.
        children_of: Returns the direct children of a node id.

    Returns:
        Descendants in breadth-first discovery order.

    """
    visited = {target_id}
    queue: deque[str] = deque([target_id])
    closure: list[Node] = []

    while queue:
        parent_id = queue.popleft()
        for child in children_of(parent_id):
            if child.id in visited:
                logger.warning(
                    "Cycle detected below %s: %s already visited",
                    target_id,
                    child.id,
                )
                continue
            visited.add(child.id)
            closure.append(child)
            queue.append(child.id)

    return closure


def pool_children(pool: Iterable[Node]) -> ChildLookup:
    """Build a ``children_of`` lookup over an already-materialized pool."""
    by_parent: dict[str | None, list[Node]] = defaultdict(list)
    for node in pool:
        by_parent[node.parent_id].append(node)

    def children_of(parent_id: str) -> list[Node]:
        return by_parent.get(parent_id, [])

    return children_of


@dataclass(frozen=True)
class CascadeResult:
    """Outcome of a cascade: the target and descendants as they now stand.

    For a purge the nodes are given as they were before removal.
    """

    transition: Transition
    target: Node
    descendants: tuple[Node, ...] = ()
    skipped_ids: tuple[str, ...] = field(default=())

    @property
    def affected_ids(self) -> list[str]:
        """Ids written by the cascade, target first."""
        skipped = set(self.skipped_ids)
        return [self.target.id] + [
            n.id for n in self.descendants if n.id not in skipped
        ]


class CascadeEngine:
    """Apply cascading lifecycle transitions against the node store.

    The store has no multi-record transactions, so the target is written
    first and descendants after it. A descendant failure after a successful
    target write surfaces as :class:`PartialCascadeFailureError`.
    """

    def __init__(
        self,
        store: NodeStore,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Bind the engine to ``store`` and a clock used for timestamps."""
        self.store = store
        self.clock = clock

    def _children(self, owner: str, *, trashed: bool | None) -> ChildLookup:
        def children_of(parent_id: str) -> list[Node]:
            return self.store.find(owner, parent_id=parent_id, trashed=trashed)

        return children_of

    def closure(self, target: Node, *, trashed: bool | None = None) -> list[Node]:
        """Descendant closure of ``target`` in the store, optionally state scoped."""
        lookup = self._children(target.owner, trashed=trashed)
        return descendant_closure(target.id, lookup)

    def soft_delete(self, target: Node) -> CascadeResult:
        """Move ``target`` and its whole subtree to the trash.

        Descendants already stamped at or after this cascade's timestamp were
        handled by a concurrent cascade and are left alone.

        Raises:
            InvalidTransitionError: If ``target`` is already in trash.
            PartialCascadeFailureError: If a descendant write fails.

        """
        if target.is_trashed:
            msg = f"Note {target.id} is already in trash"
            raise InvalidTransitionError(msg)

        now = self.clock()
        descendants = self.closure(target)
        skipped = [
            n.id
            for n in descendants
            if n.deleted_at is not None and n.deleted_at >= now
        ]
        return self._apply(
            Transition.SOFT_DELETE,
            target,
            descendants,
            skipped,
            lambda node: node.model_copy(update={"deleted_at": now, "updated_at": now}),
        )

    def restore(self, target: Node) -> CascadeResult:
        """Bring ``target`` and its trashed subtree back.

        Raises:
            InvalidTransitionError: If ``target`` is not in trash, or its parent
                is missing or itself in trash. Nothing is written in that case.
            PartialCascadeFailureError: If a descendant write fails.

        """
        if not target.is_trashed:
            msg = f"Note {target.id} is not in trash"
            raise InvalidTransitionError(msg)
        if target.parent_id is not None:
            parent = self.store.get(target.owner, target.parent_id)
            if parent is None or parent.is_trashed:
                msg = (
                    "Parent folder does not exist or is in trash. "
                    "Restore parent folder first."
                )
                raise InvalidTransitionError(msg)

        now = self.clock()
        descendants = self.closure(target, trashed=True)
        changes = {"deleted_at": None, "updated_at": now}
        return self._apply(
            Transition.RESTORE,
            target,
            descendants,
            [],
            lambda node: node.model_copy(update=changes),
        )

    def purge(self, target: Node) -> CascadeResult:
        """Remove ``target`` and its trashed subtree from the store for good.

        Raises:
            InvalidTransitionError: If ``target`` is still active.
            PartialCascadeFailureError: If a descendant removal fails.

        """
        if not target.is_trashed:
            msg = f"Note {target.id} must be moved to trash before it is purged"
            raise InvalidTransitionError(msg)

        descendants = self.closure(target, trashed=True)
        return self._apply(Transition.PURGE, target, descendants, [], None)

    def _apply(
        self,
        transition: Transition,
        target: Node,
        descendants: list[Node],
        skipped: list[str],
        rewrite: Callable[[Node], Node] | None,
    ) -> CascadeResult:
        """Write the target, then each descendant, collecting failures."""
        self._write(target, rewrite)
        written_target = rewrite(target) if rewrite else target

        skip = set(skipped)
        applied: list[str] = []
        failed: list[str] = []
        result_nodes: list[Node] = []
        for node in descendants:
            if node.id in skip:
                result_nodes.append(node)
                continue
            try:
                self._write(node, rewrite)
            except TransientStoreError as e:
                logger.warning(
                    "Cascade %s on %s failed for descendant %s: %s",
                    transition,
                    target.id,
                    node.id,
                    e,
                )
                failed.append(node.id)
                result_nodes.append(node)
                continue
            applied.append(node.id)
            result_nodes.append(rewrite(node) if rewrite else node)

        if failed:
            raise PartialCascadeFailureError(target.id, applied, failed)

        logger.info(
            "Cascade %s on %s touched %d descendant(s)",
            transition,
            target.id,
            len(applied),
        )
        return CascadeResult(
            transition,
            written_target,
            tuple(result_nodes),
            tuple(skipped),
        )

    def _write(self, node: Node, rewrite: Callable[[Node], Node] | None) -> None:
        if rewrite is None:
            self.store.remove(node.owner, node.id)
        else:
            self.store.put(rewrite(node))


def mirror_soft_delete(
    active: tuple[Node, ...],
    trash: tuple[Node, ...],
    target_id: str,
    stamp: datetime,
) -> tuple[tuple[Node, ...], tuple[Node, ...], tuple[Node, ...]]:
    """Apply a soft delete to the nodes a client knows about.

    Args:
        active: Known active nodes.
        trash: Known trashed nodes.
        target_id: Node being deleted.
        stamp: ``deleted_at`` value for the moved nodes.

    Returns:
        ``(active, trash, moved)`` where ``moved`` are the newly trashed nodes.

    """
    target = next((n for n in active if n.id == target_id), None)
    if target is None:
        return active, trash, ()

    subtree = [target, *descendant_closure(target_id, pool_children(active))]
    moving = {n.id for n in subtree}
    moved = tuple(n.model_copy(update={"deleted_at": stamp}) for n in subtree)
    remaining = tuple(n for n in active if n.id not in moving)
    kept_trash = tuple(n for n in trash if n.id not in moving)
    return remaining, kept_trash + moved, moved


def mirror_restore(
    active: tuple[Node, ...],
    trash: tuple[Node, ...],
    target_id: str,
) -> tuple[tuple[Node, ...], tuple[Node, ...], tuple[Node, ...]]:
    """Apply a restore to the nodes a client knows about.

    Returns:
        ``(active, trash, restored)``.

    """
    target = next((n for n in trash if n.id == target_id), None)
    if target is None:
        return active, trash, ()

    subtree = [target, *descendant_closure(target_id, pool_children(trash))]
    moving = {n.id for n in subtree}
    restored = tuple(n.model_copy(update={"deleted_at": None}) for n in subtree)
    kept_active = tuple(n for n in active if n.id not in moving)
    remaining = tuple(n for n in trash if n.id not in moving)
    return kept_active + restored, remaining, restored


def mirror_purge(
    trash: tuple[Node, ...],
    target_id: str,
) -> tuple[tuple[Node, ...], tuple[Node, ...]]:
    """Drop ``target_id`` and its known trashed descendants.

    Returns:
        ``(trash, removed)``.

    """
    if not any(n.id == target_id for n in trash):
        return trash, ()

    removing = {target_id} | {
        n.id for n in descendant_closure(target_id, pool_children(trash))
    }
    removed = tuple(n for n in trash if n.id in removing)
    remaining = tuple(n for n in trash if n.id not in removing)
    return remaining, removed
