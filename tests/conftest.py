"""Test configuration."""

import asyncio
import uuid
from collections.abc import Awaitable, Callable, Iterator
from datetime import UTC, datetime, timedelta
from functools import partial
from typing import Any

import pytest
from fastapi.testclient import TestClient

from notetree.client import LocalNodeStoreClient, NodeStoreClient
from notetree.errors import NoteTreeError, TransientStoreError
from notetree.lifecycle import LifecycleManager
from notetree.models import Node
from notetree.service import DeleteOutcome, NodeService, RestoreOutcome
from notetree.storage import NodeStore

OWNER = "alice"
OTHER_OWNER = "bob"
TOKENS = f"alice-token={OWNER},bob-token={OTHER_OWNER}"
AUTH = {"Authorization": "Bearer alice-token"}
OTHER_AUTH = {"Authorization": "Bearer bob-token"}


class FakeClock:
    """Deterministic clock that advances one second per reading."""

    def __init__(self) -> None:
        self.now = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


class FailingStore(NodeStore):
    """Node store whose writes and removals fail for selected node ids."""

    def __init__(self, root: str) -> None:
        super().__init__(root)
        self.fail_ids: set[str] = set()

    def put(self, node: Node) -> Node:
        if node.id in self.fail_ids:
            msg = f"Simulated write failure for {node.id}"
            raise TransientStoreError(msg)
        return super().put(node)

    def remove(self, owner: str, node_id: str) -> bool:
        if node_id in self.fail_ids:
            msg = f"Simulated remove failure for {node_id}"
            raise TransientStoreError(msg)
        return super().remove(owner, node_id)


class FlakyClient(NodeStoreClient):
    """Wraps a client to inject failures and hold requests or answers."""

    def __init__(self, inner: NodeStoreClient) -> None:
        self.inner = inner
        self.failures: dict[str, NoteTreeError] = {}
        self.gate: asyncio.Event | None = None
        self.holds: dict[str, asyncio.Event] = {}
        self.calls: list[str] = []
        self.answered: list[str] = []

    def fail_next(self, method: str, error: NoteTreeError) -> None:
        self.failures[method] = error

    async def _run(self, method: str, request: Callable[[], Awaitable[Any]]) -> Any:
        self.calls.append(method)
        if self.gate is not None:
            await self.gate.wait()
        error = self.failures.pop(method, None)
        if error is not None:
            raise error
        result = await request()
        self.answered.append(method)
        hold = self.holds.get(method)
        if hold is not None:
            await hold.wait()
        return result

    async def list_root(self) -> list[Node]:
        return await self._run("list_root", self.inner.list_root)

    async def list_children(self, parent_id: str) -> list[Node]:
        return await self._run(
            "list_children", partial(self.inner.list_children, parent_id)
        )

    async def list_trash(self) -> list[Node]:
        return await self._run("list_trash", self.inner.list_trash)

    async def get(self, node_id: str) -> Node:
        return await self._run("get", partial(self.inner.get, node_id))

    async def create(self, name: str, **kwargs: Any) -> Node:
        return await self._run("create", partial(self.inner.create, name, **kwargs))

    async def update(self, node_id: str, **kwargs: Any) -> Node:
        return await self._run("update", partial(self.inner.update, node_id, **kwargs))

    async def move(self, node_id: str, parent_id: str | None) -> Node:
        return await self._run("move", partial(self.inner.move, node_id, parent_id))

    async def delete(self, node_id: str, *, permanent: bool = False) -> DeleteOutcome:
        return await self._run(
            "delete", partial(self.inner.delete, node_id, permanent=permanent)
        )

    async def restore(self, node_id: str) -> RestoreOutcome:
        return await self._run("restore", partial(self.inner.restore, node_id))

    async def search(self, query: str, **kwargs: Any) -> Any:
        return await self._run("search", partial(self.inner.search, query, **kwargs))

    async def stats(self) -> dict[str, Any]:
        return await self._run("stats", self.inner.stats)


@pytest.fixture
def memory_root() -> str:
    """A fresh in-memory store root per test."""
    return f"memory://notetree-{uuid.uuid4().hex}"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(memory_root: str) -> FailingStore:
    return FailingStore(memory_root)


@pytest.fixture
def service(store: FailingStore, clock: FakeClock) -> NodeService:
    return NodeService(store, clock=clock, max_content_length=1000)


@pytest.fixture
def local_client(service: NodeService) -> LocalNodeStoreClient:
    return LocalNodeStoreClient(service, OWNER)


@pytest.fixture
def flaky_client(local_client: LocalNodeStoreClient) -> FlakyClient:
    return FlakyClient(local_client)


@pytest.fixture
def manager(flaky_client: FlakyClient, clock: FakeClock) -> LifecycleManager:
    return LifecycleManager(flaky_client, timeout=5.0, clock=clock)


@pytest.fixture
def api_env(monkeypatch: pytest.MonkeyPatch, memory_root: str) -> str:
    """Point the server at a fresh memory root with two known tokens."""
    monkeypatch.setenv("NOTETREE_ROOT", memory_root)
    monkeypatch.setenv("NOTETREE_TOKENS", TOKENS)
    monkeypatch.delenv("NOTETREE_ALLOW_REMOTE", raising=False)
    return memory_root


@pytest.fixture
def test_client(api_env: str) -> Iterator[TestClient]:  # noqa: ARG001
    """Create a TestClient bound to the memory store."""
    from notetree_server.main import app

    with TestClient(app) as client:
        yield client
