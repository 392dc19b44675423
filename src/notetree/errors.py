"""Error taxonomy shared by the store, the HTTP layer and the client cache."""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorKind(StrEnum):
    """Stable identifiers carried by every error on the wire."""

    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    PARTIAL_CASCADE_FAILURE = "partial_cascade_failure"
    TRANSIENT = "transient"


class NoteTreeError(Exception):
    """Base class for all recoverable notetree errors."""

    kind: ErrorKind = ErrorKind.TRANSIENT

    def __init__(self, message: str) -> None:
        """Store ``message`` so it can be echoed to API consumers."""
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict[str, Any]:
        """Return the JSON-serializable error body used by the HTTP API."""
        return {"kind": str(self.kind), "message": self.message}


class UnauthorizedError(NoteTreeError):
    """Raised when no valid session/owner could be resolved."""

    kind = ErrorKind.UNAUTHORIZED


class NodeNotFoundError(NoteTreeError):
    """Raised when a node is missing or not owned by the caller."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, node_id: str, message: str | None = None) -> None:
        """Build the error for ``node_id``."""
        super().__init__(message or f"Note {node_id} not found")
        self.node_id = node_id

    def to_detail(self) -> dict[str, Any]:
        """Include the missing id."""
        return {**super().to_detail(), "node_id": self.node_id}


class InvalidTransitionError(NoteTreeError):
    """Raised when a lifecycle transition is refused with no partial effect."""

    kind = ErrorKind.INVALID_TRANSITION


class PartialCascadeFailureError(NoteTreeError):
    """Raised when a cascade wrote its target but failed on descendants.

    The store may now hold a mix of old and new states across the subtree, so
    callers must re-fetch it instead of trusting any cached view.
    """

    kind = ErrorKind.PARTIAL_CASCADE_FAILURE

    def __init__(
        self,
        target_id: str,
        applied_ids: list[str] | tuple[str, ...],
        failed_ids: list[str] | tuple[str, ...],
        message: str | None = None,
    ) -> None:
        """Record which descendants were and were not written."""
        super().__init__(
            message
            or (
                f"Cascade on {target_id} failed for {len(failed_ids)} "
                f"descendant(s) after {len(applied_ids)} succeeded"
            ),
        )
        self.target_id = target_id
        self.applied_ids = tuple(applied_ids)
        self.failed_ids = tuple(failed_ids)

    def to_detail(self) -> dict[str, Any]:
        """Include the target and the applied/failed descendant ids."""
        return {
            **super().to_detail(),
            "target_id": self.target_id,
            "applied_ids": list(self.applied_ids),
            "failed_ids": list(self.failed_ids),
        }


class TransientStoreError(NoteTreeError):
    """Raised on timeouts, connectivity loss and storage I/O failures."""

    kind = ErrorKind.TRANSIENT


def error_from_detail(detail: Any, status_code: int) -> NoteTreeError:  # noqa: ANN401
    """Rebuild a :class:`NoteTreeError` from an API error body.

    Args:
        detail: The ``detail`` member of the response body (dict or string).
        status_code: HTTP status used when ``detail`` carries no ``kind``.

    Returns:
        The matching error instance.

    """
    if isinstance(detail, dict):
        message = str(detail.get("message", ""))
        kind = detail.get("kind")
    else:
        message = str(detail)
        kind = None

    try:
        kind = ErrorKind(kind) if kind is not None else None
    except ValueError:
        kind = None
    if kind is None:
        kind = _KIND_BY_STATUS.get(status_code, ErrorKind.TRANSIENT)

    if kind == ErrorKind.NOT_FOUND:
        node_id = detail.get("node_id", "") if isinstance(detail, dict) else ""
        return NodeNotFoundError(node_id, message or None)
    if kind == ErrorKind.PARTIAL_CASCADE_FAILURE and isinstance(detail, dict):
        return PartialCascadeFailureError(
            detail.get("target_id", ""),
            detail.get("applied_ids", []),
            detail.get("failed_ids", []),
            message or None,
        )
    error_cls = _CLASS_BY_KIND.get(kind, TransientStoreError)
    return error_cls(message or f"Request failed with status {status_code}")


_KIND_BY_STATUS: dict[int, ErrorKind] = {
    400: ErrorKind.INVALID_TRANSITION,
    401: ErrorKind.UNAUTHORIZED,
    403: ErrorKind.UNAUTHORIZED,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.PARTIAL_CASCADE_FAILURE,
    422: ErrorKind.INVALID_TRANSITION,
}

_CLASS_BY_KIND: dict[ErrorKind, type[NoteTreeError]] = {
    ErrorKind.UNAUTHORIZED: UnauthorizedError,
    ErrorKind.INVALID_TRANSITION: InvalidTransitionError,
    ErrorKind.TRANSIENT: TransientStoreError,
}

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_TRANSITION: 400,
    ErrorKind.PARTIAL_CASCADE_FAILURE: 409,
    ErrorKind.TRANSIENT: 503,
}
