"""Node store: a flat, owner-partitioned document store on top of fsspec.

Layout::

    <root>/owners/<owner>/nodes/<node_id>.json

The store only offers per-record CRUD and simple filter queries. It enforces
no referential integrity and performs no cascading; that is the job of
:mod:`notetree.cascade` and :mod:`notetree.service`.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import ValidationError

from .errors import TransientStoreError
from .models import Node, node_from_record
from .utils import fs_join, fs_read_json, fs_write_json, get_fs_and_path, validate_id

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    import fsspec

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".json"


class Unset(Enum):
    """Marker for an argument the caller left out."""

    UNSET = "UNSET"


UNSET = Unset.UNSET


class NodeStore:
    """Owner-scoped JSON record store for nodes."""

    def __init__(
        self,
        root: str | Path,
        fs: fsspec.AbstractFileSystem | None = None,
    ) -> None:
        """Open (and create if needed) the store rooted at ``root``.

        Args:
            root: Local directory or fsspec URL (``memory://...`` works too).
            fs: Optional pre-built filesystem; ``root`` is then a path on it.

        """
        self.fs, self.root = get_fs_and_path(root, fs)
        self._known_dirs: set[str] = set()
        try:
            self.fs.makedirs(self.root, exist_ok=True)
        except OSError as e:
            msg = f"Cannot open node store at {root}: {e}"
            raise TransientStoreError(msg) from e

    def _nodes_dir(self, owner: str) -> str:
        safe_owner = validate_id(owner, "owner")
        return fs_join(self.root, "owners", safe_owner, "nodes")

    def _node_path(self, owner: str, node_id: str) -> str:
        safe_id = validate_id(node_id, "node_id")
        return fs_join(self._nodes_dir(owner), f"{safe_id}{RECORD_SUFFIX}")

    def get(self, owner: str, node_id: str) -> Node | None:
        """Return the node ``node_id`` of ``owner`` or None if absent.

        Malformed identifiers are reported as absent rather than raising, since
        they can never name a stored record.
        """
        try:
            path = self._node_path(owner, node_id)
        except ValueError:
            return None

        try:
            if not self.fs.exists(path):
                return None
            record = fs_read_json(self.fs, path)
        except OSError as e:
            msg = f"Failed to read note {node_id}: {e}"
            raise TransientStoreError(msg) from e
        except json.JSONDecodeError as e:
            msg = f"Record for note {node_id} is corrupt"
            raise TransientStoreError(msg) from e

        try:
            return node_from_record(record)
        except ValidationError as e:
            msg = f"Record for note {node_id} is invalid"
            raise TransientStoreError(msg) from e

    def put(self, node: Node) -> Node:
        """Insert or replace ``node``'s record."""
        path = self._node_path(node.owner, node.id)
        nodes_dir = self._nodes_dir(node.owner)
        try:
            if nodes_dir not in self._known_dirs:
                self.fs.makedirs(nodes_dir, exist_ok=True)
                self._known_dirs.add(nodes_dir)
            fs_write_json(self.fs, path, node.to_record())
        except OSError as e:
            msg = f"Failed to write note {node.id}: {e}"
            raise TransientStoreError(msg) from e
        return node

    def remove(self, owner: str, node_id: str) -> bool:
        """Delete a record; return False if it did not exist."""
        try:
            path = self._node_path(owner, node_id)
        except ValueError:
            return False

        try:
            if not self.fs.exists(path):
                return False
            self.fs.rm(path)
        except OSError as e:
            msg = f"Failed to remove note {node_id}: {e}"
            raise TransientStoreError(msg) from e
        return True

    def iter_nodes(self, owner: str) -> Iterator[Node]:
        """Yield every readable node of ``owner``; corrupt records are skipped."""
        nodes_dir = self._nodes_dir(owner)
        try:
            if not self.fs.exists(nodes_dir):
                return
            paths = sorted(self.fs.glob(fs_join(nodes_dir, f"*{RECORD_SUFFIX}")))
        except OSError as e:
            msg = f"Failed to list notes for {owner}: {e}"
            raise TransientStoreError(msg) from e

        for path in paths:
            try:
                record = fs_read_json(self.fs, path)
                yield node_from_record(record)
            except (json.JSONDecodeError, OSError, ValidationError) as e:
                logger.warning("Could not read note record at %s: %s", path, e)
                continue

    def find(
        self,
        owner: str,
        *,
        parent_id: str | None | Unset = UNSET,
        trashed: bool | None = None,
        is_folder: bool | None = None,
    ) -> list[Node]:
        """Filter ``owner``'s nodes, newest update first.

        Args:
            owner: Owner whose partition is scanned.
            parent_id: Match this parent (``None`` selects root level); leave
                unset to match any parent.
            trashed: True for trash only, False for active only, None for both.
            is_folder: Restrict to folders (True) or leaves (False).

        Returns:
            Matching nodes sorted by ``updated_at`` descending, then id.

        """
        matches = [
            node
            for node in self.iter_nodes(owner)
            if (parent_id is UNSET or node.parent_id == parent_id)
            and (trashed is None or node.is_trashed == trashed)
            and (is_folder is None or node.is_folder == is_folder)
        ]
        matches.sort(key=lambda n: n.id)
        matches.sort(key=lambda n: n.updated_at, reverse=True)
        return matches
