"""Ancestor resolution: walk a node's parent chain up to the root."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .errors import NodeNotFoundError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from .models import Node

    Fetch = Callable[[str], Awaitable[Node]]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AncestorPath:
    """The parent chain of ``target_id``.

    ``chain`` runs from the top-most ancestor found down to the direct parent
    and never contains the target itself. ``fetched`` lists the ancestors that
    were not known locally and had to be requested.
    """

    target_id: str
    chain: tuple[Node, ...] = ()
    fetched: tuple[Node, ...] = ()
    complete: bool = True
    warning: str | None = None
    trash_fallback: bool = False

    @property
    def ancestor_ids(self) -> list[str]:
        """Ids of the chain, root first."""
        return [node.id for node in self.chain]

    @property
    def folder_ids(self) -> list[str]:
        """Ids of chain members that can be expanded."""
        return [node.id for node in self.chain if node.is_folder]


@dataclass
class AncestorResolver:
    """Resolve ancestor chains against local knowledge plus a store fetch.

    Attributes:
        known: Active nodes already held locally, by id.
        trash: Trashed nodes already held locally, by id.
        fetch: Coroutine function returning a node by id; raises
            :class:`NodeNotFoundError` when it does not exist.

    """

    known: Mapping[str, Node]
    trash: Mapping[str, Node] = field(default_factory=dict)
    fetch: Fetch | None = None

    async def walk(self, node: Node) -> AncestorPath:
        """Walk ``parent_id`` links from ``node`` towards the root.

        Active nodes use local knowledge first and fetch unknown parents one
        at a time. A trashed node only walks the local trash pool and stops at
        the first parent outside it, in which case the node is shown under the
        flat trash root. A repeated id ends the walk with a warning.
        """
        if node.is_trashed:
            return self._walk_trash(node)

        chain: list[Node] = []
        fetched: list[Node] = []
        seen = {node.id}
        current = node

        while current.parent_id is not None:
            parent_id = current.parent_id
            if parent_id in seen:
                return self._broken(node, chain, fetched, _cycle_message(parent_id))
            seen.add(parent_id)

            parent = self.known.get(parent_id)
            if parent is None and self.fetch is not None:
                try:
                    parent = await self.fetch(parent_id)
                except NodeNotFoundError:
                    parent = None
                if parent is not None:
                    fetched.append(parent)
            if parent is None or parent.is_trashed:
                msg = f"Ancestor {parent_id} of {node.id} is missing or in trash"
                return self._broken(node, chain, fetched, msg)

            chain.append(parent)
            current = parent

        chain.reverse()
        return AncestorPath(node.id, tuple(chain), tuple(fetched))

    def _walk_trash(self, node: Node) -> AncestorPath:
        chain: list[Node] = []
        seen = {node.id}
        current = node

        while current.parent_id is not None:
            parent_id = current.parent_id
            if parent_id in seen:
                logger.warning(_cycle_message(parent_id))
                chain.reverse()
                return AncestorPath(
                    node.id,
                    tuple(chain),
                    complete=False,
                    warning=_cycle_message(parent_id),
                    trash_fallback=True,
                )
            seen.add(parent_id)
            parent = self.trash.get(parent_id)
            if parent is None:
                break
            chain.append(parent)
            current = parent

        chain.reverse()
        return AncestorPath(
            node.id,
            tuple(chain),
            complete=current.parent_id is None,
            trash_fallback=True,
        )

    @staticmethod
    def _broken(
        node: Node,
        chain: list[Node],
        fetched: list[Node],
        message: str,
    ) -> AncestorPath:
        logger.warning(message)
        chain.reverse()
        return AncestorPath(
            node.id,
            tuple(chain),
            tuple(fetched),
            complete=False,
            warning=message,
        )


def _cycle_message(node_id: str) -> str:
    return f"Cycle detected in ancestor chain at {node_id}"
