"""Note endpoints."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from notetree.errors import STATUS_BY_KIND, NoteTreeError
from notetree.service import NodeService
from notetree.storage import UNSET
from notetree_server.core.security import get_owner
from notetree_server.core.storage import get_service
from notetree_server.models.schemas import NoteCreate, NoteMove, NoteUpdate

router = APIRouter(prefix="/note", tags=["note"])
logger = logging.getLogger(__name__)

Owner = Annotated[str, Depends(get_owner)]
Service = Annotated[NodeService, Depends(get_service)]


def _http_error(error: NoteTreeError) -> HTTPException:
    """Translate a domain error into its HTTP response."""
    return HTTPException(
        status_code=STATUS_BY_KIND[error.kind],
        detail=error.to_detail(),
    )


def _internal_error(message: str, error: Exception) -> HTTPException:
    logger.exception(message)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(error),
    )


@router.get("")
def list_notes_endpoint(
    owner: Owner,
    service: Service,
    root: bool = False,  # noqa: FBT001, FBT002
    trash: bool = False,  # noqa: FBT001, FBT002
    parent_id: Annotated[str | None, Query(alias="parentId")] = None,
) -> list[dict[str, Any]]:
    """List notes: root level, children of a folder, the trash, or all active."""
    try:
        if trash:
            nodes = service.list_trash(owner)
        elif parent_id is not None:
            nodes = service.list_children(owner, parent_id)
        elif root:
            nodes = service.list_root(owner)
        else:
            nodes = service.list_active(owner)
    except NoteTreeError as e:
        raise _http_error(e) from e
    except Exception as e:
        raise _internal_error("Failed to list notes", e) from e

    return [node.summary() for node in nodes]


@router.get("/search")
def search_notes_endpoint(
    owner: Owner,
    service: Service,
    q: str = "",
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> dict[str, Any]:
    """Search note names and contents; folders are never returned."""
    try:
        result = service.search(owner, q, page=page, limit=limit)
    except NoteTreeError as e:
        raise _http_error(e) from e
    except Exception as e:
        raise _internal_error("Failed to search notes", e) from e

    return {
        "data": [hit.model_dump(mode="json") for hit in result.data],
        "hasMore": result.has_more,
    }


@router.get("/stats")
def note_stats_endpoint(owner: Owner, service: Service) -> dict[str, Any]:
    """Counters, recent notes and seven-day activity."""
    try:
        return service.stats(owner)
    except NoteTreeError as e:
        raise _http_error(e) from e
    except Exception as e:
        raise _internal_error("Failed to compute note stats", e) from e


@router.get("/{node_id}")
def get_note_endpoint(node_id: str, owner: Owner, service: Service) -> dict[str, Any]:
    """Get a note or folder with its content."""
    try:
        return service.get(owner, node_id).to_record()
    except NoteTreeError as e:
        raise _http_error(e) from e
    except Exception as e:
        raise _internal_error("Failed to get note", e) from e


@router.post("", status_code=status.HTTP_201_CREATED)
def create_note_endpoint(
    payload: NoteCreate,
    owner: Owner,
    service: Service,
) -> dict[str, Any]:
    """Create a note or folder."""
    try:
        node = service.create(
            owner,
            payload.name,
            parent_id=payload.parent_id,
            is_folder=payload.is_folder,
            duplicate_from_id=payload.duplicate_from_id,
        )
    except NoteTreeError as e:
        raise _http_error(e) from e
    except Exception as e:
        raise _internal_error("Failed to create note", e) from e

    return node.to_record()


def _apply_update(
    service: NodeService,
    owner: str,
    node_id: str,
    payload: NoteUpdate,
) -> dict[str, Any]:
    parent_id = payload.parent_id if "parent_id" in payload.model_fields_set else UNSET
    try:
        node = service.update(
            owner,
            node_id,
            name=payload.name,
            content=payload.content,
            parent_id=parent_id,
        )
    except NoteTreeError as e:
        raise _http_error(e) from e
    except Exception as e:
        raise _internal_error("Failed to update note", e) from e

    return node.to_record()


@router.patch("")
def update_note_by_query_endpoint(
    payload: NoteUpdate,
    owner: Owner,
    service: Service,
    node_id: Annotated[str, Query(alias="id")],
) -> dict[str, Any]:
    """Update a note addressed as ``/note?id=ID``."""
    return _apply_update(service, owner, node_id, payload)


@router.patch("/{node_id}")
def update_note_endpoint(
    node_id: str,
    payload: NoteUpdate,
    owner: Owner,
    service: Service,
) -> dict[str, Any]:
    """Update name, content or parent of a note."""
    return _apply_update(service, owner, node_id, payload)


@router.patch("/{node_id}/move")
def move_note_endpoint(
    node_id: str,
    payload: NoteMove,
    owner: Owner,
    service: Service,
) -> dict[str, Any]:
    """Move a note or folder under another folder, or to the root."""
    try:
        node = service.move(owner, node_id, payload.parent_id)
    except NoteTreeError as e:
        raise _http_error(e) from e
    except Exception as e:
        raise _internal_error("Failed to move note", e) from e

    return node.to_record()


@router.delete("/{node_id}")
def delete_note_endpoint(
    node_id: str,
    owner: Owner,
    service: Service,
    permanent: bool = False,  # noqa: FBT001, FBT002
) -> dict[str, Any]:
    """Move a subtree to trash, or purge a trashed one with ``permanent``."""
    try:
        outcome = service.delete(owner, node_id, permanent=permanent)
    except NoteTreeError as e:
        raise _http_error(e) from e
    except Exception as e:
        raise _internal_error("Failed to delete note", e) from e

    return {
        "message": outcome.message,
        "permanent": outcome.permanent,
        "affected": list(outcome.affected),
    }


@router.put("/{node_id}/restore")
def restore_note_endpoint(
    node_id: str,
    owner: Owner,
    service: Service,
) -> dict[str, Any]:
    """Restore a trashed subtree."""
    try:
        outcome = service.restore(owner, node_id)
    except NoteTreeError as e:
        raise _http_error(e) from e
    except Exception as e:
        raise _internal_error("Failed to restore note", e) from e

    return {"note": outcome.node.to_record(), "childrenCount": outcome.children_count}
