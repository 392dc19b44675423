"""Asynchronous clients for the node store.

:class:`LocalNodeStoreClient` drives a :class:`~notetree.service.NodeService`
in-process; :class:`HttpNodeStoreClient` talks to the ``notetree_server`` API.
Both raise :class:`~notetree.errors.NoteTreeError` subclasses only.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from .errors import TransientStoreError, error_from_detail
from .models import Node, node_from_record
from .search import SearchPage
from .service import DeleteOutcome, RestoreOutcome

if TYPE_CHECKING:
    from .service import NodeService

logger = logging.getLogger(__name__)


class NodeStoreClient(ABC):
    """Operations the lifecycle manager needs from the authoritative store."""

    @abstractmethod
    async def list_root(self) -> list[Node]:
        """Active root-level nodes."""

    @abstractmethod
    async def list_children(self, parent_id: str) -> list[Node]:
        """Active direct children of ``parent_id``."""

    @abstractmethod
    async def list_trash(self) -> list[Node]:
        """Every trashed node."""

    @abstractmethod
    async def get(self, node_id: str) -> Node:
        """One node with its content."""

    @abstractmethod
    async def create(
        self,
        name: str,
        *,
        parent_id: str | None = None,
        is_folder: bool = False,
        duplicate_from_id: str | None = None,
    ) -> Node:
        """Create a node and return it with its assigned id."""

    @abstractmethod
    async def update(
        self,
        node_id: str,
        *,
        name: str | None = None,
        content: str | None = None,
    ) -> Node:
        """Rename and/or rewrite the content of a node."""

    @abstractmethod
    async def move(self, node_id: str, parent_id: str | None) -> Node:
        """Reparent a node."""

    @abstractmethod
    async def delete(self, node_id: str, *, permanent: bool = False) -> DeleteOutcome:
        """Soft delete, or purge when ``permanent``."""

    @abstractmethod
    async def restore(self, node_id: str) -> RestoreOutcome:
        """Restore a trashed subtree."""

    @abstractmethod
    async def search(self, query: str, *, page: int = 1, limit: int = 10) -> SearchPage:
        """Search active notes."""

    @abstractmethod
    async def stats(self) -> dict[str, Any]:
        """Dashboard counters."""

    async def aclose(self) -> None:  # noqa: B027
        """Release any held resources."""


class LocalNodeStoreClient(NodeStoreClient):
    """In-process client; service calls run in a worker thread."""

    def __init__(self, service: NodeService, owner: str) -> None:
        """Act as ``owner`` against ``service``."""
        self.service = service
        self.owner = owner

    async def list_root(self) -> list[Node]:
        return await asyncio.to_thread(self.service.list_root, self.owner)

    async def list_children(self, parent_id: str) -> list[Node]:
        return await asyncio.to_thread(
            self.service.list_children, self.owner, parent_id
        )

    async def list_trash(self) -> list[Node]:
        return await asyncio.to_thread(self.service.list_trash, self.owner)

    async def get(self, node_id: str) -> Node:
        return await asyncio.to_thread(self.service.get, self.owner, node_id)

    async def create(
        self,
        name: str,
        *,
        parent_id: str | None = None,
        is_folder: bool = False,
        duplicate_from_id: str | None = None,
    ) -> Node:
        return await asyncio.to_thread(
            self.service.create,
            self.owner,
            name,
            parent_id=parent_id,
            is_folder=is_folder,
            duplicate_from_id=duplicate_from_id,
        )

    async def update(
        self,
        node_id: str,
        *,
        name: str | None = None,
        content: str | None = None,
    ) -> Node:
        return await asyncio.to_thread(
            self.service.update, self.owner, node_id, name=name, content=content
        )

    async def move(self, node_id: str, parent_id: str | None) -> Node:
        return await asyncio.to_thread(
            self.service.move, self.owner, node_id, parent_id
        )

    async def delete(self, node_id: str, *, permanent: bool = False) -> DeleteOutcome:
        return await asyncio.to_thread(
            self.service.delete, self.owner, node_id, permanent=permanent
        )

    async def restore(self, node_id: str) -> RestoreOutcome:
        return await asyncio.to_thread(self.service.restore, self.owner, node_id)

    async def search(self, query: str, *, page: int = 1, limit: int = 10) -> SearchPage:
        return await asyncio.to_thread(
            self.service.search, self.owner, query, page=page, limit=limit
        )

    async def stats(self) -> dict[str, Any]:
        return await asyncio.to_thread(self.service.stats, self.owner)


class HttpNodeStoreClient(NodeStoreClient):
    """Client for the ``/note`` HTTP API.

    Error bodies are turned back into :class:`NoteTreeError` subclasses;
    timeouts and connection problems become :class:`TransientStoreError`.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Prepare a pooled async HTTP client.

        Args:
            base_url: API root, e.g. ``http://127.0.0.1:8000``.
            token: Bearer token identifying the owner.
            timeout: Per-request timeout in seconds.
            transport: Optional transport (``httpx.ASGITransport`` in tests).

        """
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )

    async def __aenter__(self) -> HttpNodeStoreClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        **kwargs: Any,  # noqa: ANN401
    ) -> Any:  # noqa: ANN401
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            msg = f"Request {method} {path} timed out"
            raise TransientStoreError(msg) from e
        except httpx.TransportError as e:
            logger.error("Network error on %s %s: %s", method, path, e)
            msg = f"Could not reach the note server: {e}"
            raise TransientStoreError(msg) from e

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = response.text or None
            detail = body.get("detail") if isinstance(body, dict) else body
            raise error_from_detail(detail, response.status_code)

        try:
            return response.json()
        except ValueError as e:
            msg = f"Malformed response from {method} {path}"
            raise TransientStoreError(msg) from e

    async def _node(
        self,
        method: str,
        path: str,
        **kwargs: Any,  # noqa: ANN401
    ) -> Node:
        return _parse_node(await self._request(method, path, **kwargs))

    async def _nodes(self, params: dict[str, str]) -> list[Node]:
        payload = await self._request("GET", "/note", params=params)
        return [_parse_node(record) for record in payload]

    async def list_root(self) -> list[Node]:
        return await self._nodes({"root": "true"})

    async def list_children(self, parent_id: str) -> list[Node]:
        return await self._nodes({"parentId": parent_id})

    async def list_trash(self) -> list[Node]:
        return await self._nodes({"trash": "true"})

    async def get(self, node_id: str) -> Node:
        return await self._node("GET", f"/note/{node_id}")

    async def create(
        self,
        name: str,
        *,
        parent_id: str | None = None,
        is_folder: bool = False,
        duplicate_from_id: str | None = None,
    ) -> Node:
        body: dict[str, Any] = {
            "name": name,
            "parentId": parent_id,
            "isFolder": is_folder,
        }
        if duplicate_from_id is not None:
            body["duplicateFromId"] = duplicate_from_id
        return await self._node("POST", "/note", json=body)

    async def update(
        self,
        node_id: str,
        *,
        name: str | None = None,
        content: str | None = None,
    ) -> Node:
        body = {
            key: value
            for key, value in (("name", name), ("content", content))
            if value is not None
        }
        return await self._node("PATCH", f"/note/{node_id}", json=body)

    async def move(self, node_id: str, parent_id: str | None) -> Node:
        return await self._node(
            "PATCH", f"/note/{node_id}/move", json={"parentId": parent_id}
        )

    async def delete(self, node_id: str, *, permanent: bool = False) -> DeleteOutcome:
        payload = await self._request(
            "DELETE",
            f"/note/{node_id}",
            params={"permanent": "true" if permanent else "false"},
        )
        return DeleteOutcome(
            node_id=node_id,
            permanent=bool(payload.get("permanent", permanent)),
            message=str(payload.get("message", "")),
            affected=tuple(payload.get("affected", ())),
        )

    async def restore(self, node_id: str) -> RestoreOutcome:
        payload = await self._request("PUT", f"/note/{node_id}/restore")
        return RestoreOutcome(
            node=_parse_node(payload["note"]),
            children_count=int(payload.get("childrenCount", 0)),
        )

    async def search(self, query: str, *, page: int = 1, limit: int = 10) -> SearchPage:
        payload = await self._request(
            "GET",
            "/note/search",
            params={"q": query, "page": page, "limit": limit},
        )
        return SearchPage(data=payload["data"], has_more=payload["hasMore"])

    async def stats(self) -> dict[str, Any]:
        return await self._request("GET", "/note/stats")


def _parse_node(record: Any) -> Node:  # noqa: ANN401
    try:
        return node_from_record(record)
    except (TypeError, ValidationError) as e:
        msg = "Malformed note in server response"
        raise TransientStoreError(msg) from e
