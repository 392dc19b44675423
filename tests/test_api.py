"""Tests for the note API."""

import pytest
from fastapi.testclient import TestClient

from conftest import AUTH, OTHER_AUTH


def _create(client: TestClient, name: str, **fields: object) -> dict:
    response = client.post("/note", json={"name": name, **fields}, headers=AUTH)
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def projects(test_client: TestClient) -> dict:
    return _create(test_client, "Projects", isFolder=True)


@pytest.fixture
def notes_a(test_client: TestClient, projects: dict) -> dict:
    return _create(test_client, "Notes A", parentId=projects["id"])


def test_health_needs_no_token(test_client: TestClient) -> None:
    response = test_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_missing_or_unknown_token_is_401(test_client: TestClient) -> None:
    """Every note route needs a known bearer token."""
    missing = test_client.get("/note")
    unknown = test_client.get("/note", headers={"Authorization": "Bearer nope"})

    assert missing.status_code == 401
    assert missing.json()["detail"]["kind"] == "unauthorized"
    assert unknown.status_code == 401
    assert unknown.headers["WWW-Authenticate"] == "Bearer"


def test_remote_clients_are_blocked(test_client: TestClient) -> None:
    response = test_client.get(
        "/note",
        headers={**AUTH, "X-Forwarded-For": "203.0.113.9"},
    )
    assert response.status_code == 403
    assert response.json()["detail"]["kind"] == "unauthorized"


def test_create_returns_full_record(test_client: TestClient, notes_a: dict) -> None:
    assert notes_a["name"] == "Notes A"
    assert notes_a["is_folder"] is False
    assert notes_a["kind"] == "leaf"
    assert notes_a["deleted_at"] is None
    assert notes_a["owner"] == "alice"


def test_create_validation(test_client: TestClient, notes_a: dict) -> None:
    under_leaf = test_client.post(
        "/note",
        json={"name": "Child", "parentId": notes_a["id"]},
        headers=AUTH,
    )
    blank = test_client.post("/note", json={"name": "  "}, headers=AUTH)

    assert under_leaf.status_code == 400
    assert under_leaf.json()["detail"]["kind"] == "invalid_transition"
    assert blank.status_code == 400


def test_listings(test_client: TestClient, projects: dict, notes_a: dict) -> None:
    root = test_client.get("/note", params={"root": "true"}, headers=AUTH).json()
    children = test_client.get(
        "/note",
        params={"parentId": projects["id"]},
        headers=AUTH,
    ).json()
    everything = test_client.get("/note", headers=AUTH).json()

    assert [n["id"] for n in root] == [projects["id"]]
    assert [n["id"] for n in children] == [notes_a["id"]]
    assert "content" not in children[0]
    assert {n["id"] for n in everything} == {projects["id"], notes_a["id"]}


def test_other_owner_sees_nothing(test_client: TestClient, notes_a: dict) -> None:
    listing = test_client.get("/note", headers=OTHER_AUTH)
    single = test_client.get(f"/note/{notes_a['id']}", headers=OTHER_AUTH)

    assert listing.json() == []
    assert single.status_code == 404
    assert single.json()["detail"]["node_id"] == notes_a["id"]


def test_update_by_path_and_query(test_client: TestClient, notes_a: dict) -> None:
    by_path = test_client.patch(
        f"/note/{notes_a['id']}",
        json={"name": "Renamed", "content": "body", "owner": "mallory"},
        headers=AUTH,
    )
    by_query = test_client.patch(
        "/note",
        params={"id": notes_a["id"]},
        json={"parentId": None},
        headers=AUTH,
    )

    assert by_path.status_code == 200
    assert by_path.json()["content"] == "body"
    assert by_path.json()["owner"] == "alice"
    assert by_query.json()["parent_id"] is None
    assert by_query.json()["name"] == "Renamed"


def test_update_without_parent_keeps_parent(
    test_client: TestClient,
    projects: dict,
    notes_a: dict,
) -> None:
    response = test_client.patch(
        f"/note/{notes_a['id']}",
        json={"content": "only content"},
        headers=AUTH,
    )
    assert response.json()["parent_id"] == projects["id"]


def test_move_into_own_child_is_400(
    test_client: TestClient,
    projects: dict,
    notes_a: dict,
) -> None:
    """Moving "Projects" under "Notes A" is refused and nothing changes."""
    response = test_client.patch(
        f"/note/{projects['id']}/move",
        json={"parentId": notes_a["id"]},
        headers=AUTH,
    )

    assert response.status_code == 400
    reread = test_client.get(f"/note/{projects['id']}", headers=AUTH).json()
    assert reread["parent_id"] is None


def test_delete_restore_purge(
    test_client: TestClient,
    projects: dict,
    notes_a: dict,
) -> None:
    """Trash a subtree, fail to restore the child alone, restore, then purge."""
    trashed = test_client.delete(f"/note/{projects['id']}", headers=AUTH)
    assert trashed.status_code == 200
    assert trashed.json()["permanent"] is False
    assert set(trashed.json()["affected"]) == {projects["id"], notes_a["id"]}

    trash = test_client.get("/note", params={"trash": "true"}, headers=AUTH).json()
    assert {n["id"] for n in trash} == {projects["id"], notes_a["id"]}

    child = test_client.put(f"/note/{notes_a['id']}/restore", headers=AUTH)
    assert child.status_code == 400

    restored = test_client.put(f"/note/{projects['id']}/restore", headers=AUTH)
    assert restored.status_code == 200
    assert restored.json()["childrenCount"] == 1
    assert restored.json()["note"]["deleted_at"] is None

    refused = test_client.delete(
        f"/note/{projects['id']}",
        params={"permanent": "true"},
        headers=AUTH,
    )
    assert refused.status_code == 400

    test_client.delete(f"/note/{projects['id']}", headers=AUTH)
    purged = test_client.delete(
        f"/note/{projects['id']}",
        params={"permanent": "true"},
        headers=AUTH,
    )
    assert purged.json()["permanent"] is True
    gone = test_client.get(f"/note/{notes_a['id']}", headers=AUTH)
    assert gone.status_code == 404


def test_search_and_stats(test_client: TestClient, notes_a: dict) -> None:
    test_client.patch(
        f"/note/{notes_a['id']}",
        json={"content": "meeting minutes for monday"},
        headers=AUTH,
    )

    search = test_client.get(
        "/note/search",
        params={"q": "minutes", "limit": 5},
        headers=AUTH,
    ).json()
    stats = test_client.get("/note/stats", headers=AUTH).json()

    assert [hit["id"] for hit in search["data"]] == [notes_a["id"]]
    assert search["hasMore"] is False
    assert "<strong>minutes</strong>" in search["data"][0]["excerpt"]
    assert stats["stats"]["total"] == 1
    assert stats["stats"]["folders"] == 1


def test_unknown_note_is_404(test_client: TestClient) -> None:
    response = test_client.delete("/note/missing", headers=AUTH)
    assert response.status_code == 404
    assert response.json()["detail"]["kind"] == "not_found"
