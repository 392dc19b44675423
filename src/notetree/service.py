"""Authoritative note operations, scoped to a single owner per call."""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .cascade import CascadeEngine
from .config import get_max_content_length
from .errors import InvalidTransitionError, NodeNotFoundError
from .models import Folder, Leaf, Node
from .search import SearchPage, compute_stats, paginate
from .storage import UNSET, NodeStore, Unset
from .utils import utcnow, validate_id

logger = logging.getLogger(__name__)

MESSAGE_TRASHED = "Note moved to trash"
MESSAGE_ALREADY_TRASHED = "Note already in trash"
MESSAGE_PURGED = "Note deleted permanently"


@dataclass(frozen=True)
class DeleteOutcome:
    """Result of a delete request."""

    node_id: str
    permanent: bool
    message: str
    affected: tuple[str, ...] = ()


@dataclass(frozen=True)
class RestoreOutcome:
    """Result of a restore request."""

    node: Node
    children_count: int


def _clean_name(name: str) -> str:
    stripped = name.strip()
    if not stripped:
        msg = "Name must not be empty"
        raise InvalidTransitionError(msg)
    return stripped


class NodeService:
    """Owner-scoped operations over a :class:`NodeStore`.

    Every method takes the caller's ``owner``; nodes of other owners are
    reported as not found.
    """

    def __init__(
        self,
        store: NodeStore,
        *,
        clock: Callable[[], datetime] = utcnow,
        max_content_length: int | None = None,
    ) -> None:
        """Bind the service to ``store``.

        Args:
            store: The authoritative node store.
            clock: Source of ``created_at``/``updated_at``/``deleted_at``.
            max_content_length: Content size limit; defaults to configuration.

        """
        self.store = store
        self.clock = clock
        self.cascade = CascadeEngine(store, clock)
        self.max_content_length = (
            max_content_length
            if max_content_length is not None
            else get_max_content_length()
        )

    def _require(self, owner: str, node_id: str) -> Node:
        node = self.store.get(owner, node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def _require_active(self, owner: str, node_id: str) -> Node:
        node = self._require(owner, node_id)
        if node.is_trashed:
            raise NodeNotFoundError(node_id)
        return node

    def _require_parent_folder(self, owner: str, parent_id: str) -> Folder:
        parent = self.store.get(owner, parent_id)
        if parent is None or parent.is_trashed or not isinstance(parent, Folder):
            msg = "Parent folder not found or not a folder"
            raise InvalidTransitionError(msg)
        return parent

    def _check_content(self, content: str) -> None:
        if len(content) > self.max_content_length:
            msg = (
                f"Content is {len(content)} characters long; "
                f"the limit is {self.max_content_length}"
            )
            raise InvalidTransitionError(msg)

    def _check_move(self, node: Node, parent_id: str | None) -> None:
        """Refuse reparenting that breaks ownership, folder or acyclicity rules."""
        if parent_id is None:
            return
        if parent_id == node.id:
            msg = "Cannot move a note inside itself"
            raise InvalidTransitionError(msg)
        self._require_parent_folder(node.owner, parent_id)
        descendant_ids = {n.id for n in self.cascade.closure(node, trashed=False)}
        if parent_id in descendant_ids:
            msg = "Cannot move a folder into one of its own descendants"
            raise InvalidTransitionError(msg)

    def create(
        self,
        owner: str,
        name: str,
        *,
        parent_id: str | None = None,
        is_folder: bool = False,
        duplicate_from_id: str | None = None,
    ) -> Node:
        """Create a folder or a note.

        Args:
            owner: Owner of the new node.
            name: Display name; surrounding whitespace is trimmed.
            parent_id: Parent folder, or None for root level.
            is_folder: Create a folder instead of a note.
            duplicate_from_id: Copy content and tags from this note.

        Returns:
            The stored node.

        Raises:
            InvalidTransitionError: Blank name, or the parent is missing,
                trashed or not a folder.
            NodeNotFoundError: ``duplicate_from_id`` does not exist.

        """
        validate_id(owner, "owner")
        clean_name = _clean_name(name)
        if parent_id is not None:
            self._require_parent_folder(owner, parent_id)

        content = ""
        tags: tuple[str, ...] = ()
        if duplicate_from_id is not None:
            source = self._require(owner, duplicate_from_id)
            tags = source.tags
            if isinstance(source, Leaf):
                content = source.content

        now = self.clock()
        common: dict[str, Any] = {
            "id": str(uuid.uuid4()),
            "owner": owner,
            "name": clean_name,
            "parent_id": parent_id,
            "created_at": now,
            "updated_at": now,
            "tags": tags,
        }
        node: Node = (
            Folder(**common) if is_folder else Leaf(**common, content=content)
        )
        self.store.put(node)
        logger.info(
            "Created %s %s",
            node.kind,
            node.id,
            extra={"owner": owner, "node_id": node.id, "operation": "create"},
        )
        return node

    def get(self, owner: str, node_id: str) -> Node:
        """Return one node, trashed or not.

        Raises:
            NodeNotFoundError: Missing or owned by someone else.

        """
        return self._require(owner, node_id)

    def list_root(self, owner: str) -> list[Node]:
        """Active root-level nodes."""
        return self.store.find(owner, parent_id=None, trashed=False)

    def list_children(self, owner: str, parent_id: str) -> list[Node]:
        """Active direct children of ``parent_id``."""
        return self.store.find(owner, parent_id=parent_id, trashed=False)

    def list_trash(self, owner: str) -> list[Node]:
        """Every trashed node."""
        return self.store.find(owner, trashed=True)

    def list_active(self, owner: str) -> list[Node]:
        """Every active node."""
        return self.store.find(owner, trashed=False)

    def update(
        self,
        owner: str,
        node_id: str,
        *,
        name: str | None = None,
        content: str | None = None,
        parent_id: str | None | Unset = UNSET,
    ) -> Node:
        """Apply allow-listed field changes to an active node in one write.

        A ``parent_id`` change is validated exactly like :meth:`move`.

        Raises:
            NodeNotFoundError: Missing or trashed node.
            InvalidTransitionError: Blank name, content on a folder, content too
                long, or an invalid reparent.

        """
        node = self._require_active(owner, node_id)
        changes: dict[str, Any] = {}

        if name is not None:
            changes["name"] = _clean_name(name)
        if content is not None:
            if not isinstance(node, Leaf):
                msg = "Folders have no content"
                raise InvalidTransitionError(msg)
            self._check_content(content)
            changes["content"] = content
        if not isinstance(parent_id, Unset) and parent_id != node.parent_id:
            self._check_move(node, parent_id)
            changes["parent_id"] = parent_id

        if not changes:
            return node

        changes["updated_at"] = self.clock()
        updated = node.model_copy(update=changes)
        self.store.put(updated)
        logger.info(
            "Updated note %s (%s)",
            node_id,
            ", ".join(sorted(k for k in changes if k != "updated_at")),
            extra={"owner": owner, "node_id": node_id, "operation": "update"},
        )
        return updated

    def move(self, owner: str, node_id: str, parent_id: str | None) -> Node:
        """Reparent an active node; descendants follow implicitly.

        Raises:
            NodeNotFoundError: Missing or trashed node.
            InvalidTransitionError: Self-parenting, a missing/trashed/non-folder
                parent, or a parent inside the node's own subtree.

        """
        node = self._require_active(owner, node_id)
        self._check_move(node, parent_id)
        if parent_id == node.parent_id:
            return node

        moved = node.model_copy(
            update={"parent_id": parent_id, "updated_at": self.clock()},
        )
        self.store.put(moved)
        logger.info(
            "Moved note %s under %s",
            node_id,
            parent_id or "root",
            extra={"owner": owner, "node_id": node_id, "operation": "move"},
        )
        return moved

    def delete(
        self,
        owner: str,
        node_id: str,
        *,
        permanent: bool = False,
    ) -> DeleteOutcome:
        """Soft delete a subtree, or purge a trashed one when ``permanent``.

        Soft deleting a node that is already in trash is a no-op.

        Raises:
            NodeNotFoundError: Missing node.
            InvalidTransitionError: ``permanent`` on an active node.
            PartialCascadeFailureError: Some descendants could not be written.

        """
        node = self._require(owner, node_id)
        extra = {"owner": owner, "node_id": node_id, "operation": "delete"}

        if permanent:
            result = self.cascade.purge(node)
            logger.info("Purged note %s", node_id, extra=extra)
            return DeleteOutcome(
                node_id, True, MESSAGE_PURGED, tuple(result.affected_ids)
            )

        if node.is_trashed:
            logger.info("Note %s already in trash", node_id, extra=extra)
            return DeleteOutcome(node_id, False, MESSAGE_ALREADY_TRASHED)

        result = self.cascade.soft_delete(node)
        logger.info("Trashed note %s", node_id, extra=extra)
        return DeleteOutcome(
            node_id, False, MESSAGE_TRASHED, tuple(result.affected_ids)
        )

    def restore(self, owner: str, node_id: str) -> RestoreOutcome:
        """Restore a trashed subtree; restoring an active node is a no-op.

        Raises:
            NodeNotFoundError: Missing node.
            InvalidTransitionError: The parent is missing or in trash.
            PartialCascadeFailureError: Some descendants could not be written.

        """
        node = self._require(owner, node_id)
        if not node.is_trashed:
            return RestoreOutcome(node, 0)

        result = self.cascade.restore(node)
        logger.info(
            "Restored note %s with %d descendant(s)",
            node_id,
            len(result.descendants),
            extra={"owner": owner, "node_id": node_id, "operation": "restore"},
        )
        return RestoreOutcome(result.target, len(result.descendants))

    def search(
        self,
        owner: str,
        query: str,
        *,
        page: int = 1,
        limit: int = 10,
    ) -> SearchPage:
        """Search active notes (folders excluded) by name or content."""
        leaves = [
            n
            for n in self.store.find(owner, trashed=False, is_folder=False)
            if isinstance(n, Leaf)
        ]
        return paginate(leaves, query, page, limit)

    def stats(self, owner: str) -> dict[str, Any]:
        """Dashboard counters for ``owner``."""
        return compute_stats(list(self.store.iter_nodes(owner)), self.clock())
