"""Tests for the HTTP node store client against the real application."""

from collections.abc import AsyncIterator

import httpx
import pytest
import pytest_asyncio

from notetree.client import HttpNodeStoreClient
from notetree.errors import (
    InvalidTransitionError,
    NodeNotFoundError,
    PartialCascadeFailureError,
    TransientStoreError,
    UnauthorizedError,
)
from notetree.lifecycle import LifecycleManager
from notetree.models import Folder, Leaf


@pytest_asyncio.fixture
async def http_client(api_env: str) -> AsyncIterator[HttpNodeStoreClient]:  # noqa: ARG001
    from notetree_server.main import app

    transport = httpx.ASGITransport(app=app)
    async with HttpNodeStoreClient(
        "http://testserver",
        "alice-token",
        transport=transport,
    ) as client:
        yield client


def _mock_client(handler: httpx.MockTransport) -> HttpNodeStoreClient:
    return HttpNodeStoreClient("http://testserver", "t", transport=handler)


@pytest.mark.asyncio
async def test_round_trip_through_api(http_client: HttpNodeStoreClient) -> None:
    """Create, list, edit, trash and restore over HTTP."""
    projects = await http_client.create("Projects", is_folder=True)
    notes = await http_client.create("Notes A", parent_id=projects.id)
    assert isinstance(projects, Folder)
    assert isinstance(notes, Leaf)

    assert [n.id for n in await http_client.list_root()] == [projects.id]
    assert [n.id for n in await http_client.list_children(projects.id)] == [notes.id]

    edited = await http_client.update(notes.id, content="minutes")
    assert isinstance(edited, Leaf)
    assert edited.content == "minutes"

    outcome = await http_client.delete(projects.id)
    assert set(outcome.affected) == {projects.id, notes.id}
    assert {n.id for n in await http_client.list_trash()} == {projects.id, notes.id}

    restored = await http_client.restore(projects.id)
    assert restored.children_count == 1
    assert not restored.node.is_trashed


@pytest.mark.asyncio
async def test_search_and_stats(http_client: HttpNodeStoreClient) -> None:
    note = await http_client.create("Groceries")
    await http_client.update(note.id, content="buy milk and eggs")

    page = await http_client.search("MILK")
    stats = await http_client.stats()

    assert [hit.id for hit in page.data] == [note.id]
    assert not page.has_more
    assert stats["stats"]["total"] == 1


@pytest.mark.asyncio
async def test_errors_come_back_typed(http_client: HttpNodeStoreClient) -> None:
    projects = await http_client.create("Projects", is_folder=True)
    notes = await http_client.create("Notes A", parent_id=projects.id)

    with pytest.raises(NodeNotFoundError) as excinfo:
        await http_client.get("missing")
    assert excinfo.value.node_id == "missing"

    with pytest.raises(InvalidTransitionError):
        await http_client.move(projects.id, notes.id)
    with pytest.raises(InvalidTransitionError):
        await http_client.delete(projects.id, permanent=True)


@pytest.mark.asyncio
async def test_unknown_token_is_unauthorized(api_env: str) -> None:  # noqa: ARG001
    from notetree_server.main import app

    async with HttpNodeStoreClient(
        "http://testserver",
        "bad-token",
        transport=httpx.ASGITransport(app=app),
    ) as client:
        with pytest.raises(UnauthorizedError):
            await client.list_root()


@pytest.mark.asyncio
async def test_lifecycle_manager_over_http(http_client: HttpNodeStoreClient) -> None:
    """The manager behaves the same against the remote store."""
    manager = LifecycleManager(http_client, timeout=5.0)
    folder = (await manager.create("Projects", is_folder=True)).data
    note = (await manager.create("Notes A", folder.id)).data
    await manager.fetch_root()
    await manager.fetch_children(folder.id)

    noop = await manager.restore(note.id)
    deleted = await manager.soft_delete(folder.id)

    assert noop.success
    assert noop.data.children_count == 0
    assert deleted.success
    assert {n.id for n in manager.state.trash} == {folder.id, note.id}
    assert {n.id for n in await http_client.list_trash()} == {folder.id, note.id}


@pytest.mark.asyncio
async def test_connection_errors_are_transient() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        msg = "connection refused"
        raise httpx.ConnectError(msg, request=request)

    client = _mock_client(httpx.MockTransport(refuse))
    with pytest.raises(TransientStoreError):
        await client.list_root()
    await client.aclose()


@pytest.mark.asyncio
async def test_error_bodies_map_to_error_kinds() -> None:
    responses = {
        "/note/partial": httpx.Response(
            409,
            json={
                "detail": {
                    "kind": "partial_cascade_failure",
                    "message": "half done",
                    "target_id": "p",
                    "applied_ids": ["a"],
                    "failed_ids": ["b"],
                },
            },
        ),
        "/note/plain": httpx.Response(503, text="Service Unavailable"),
        "/note/bad": httpx.Response(200, json={"id": "x"}),
    }

    def handler(request: httpx.Request) -> httpx.Response:
        return responses[request.url.path]

    client = _mock_client(httpx.MockTransport(handler))

    with pytest.raises(PartialCascadeFailureError) as excinfo:
        await client.get("partial")
    assert excinfo.value.failed_ids == ("b",)
    with pytest.raises(TransientStoreError):
        await client.get("plain")
    with pytest.raises(TransientStoreError):
        await client.get("bad")
    await client.aclose()
