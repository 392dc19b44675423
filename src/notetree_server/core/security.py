"""Security helpers for the FastAPI application."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Annotated, Final

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from notetree.config import ConfigError, get_tokens
from notetree.errors import UnauthorizedError

if TYPE_CHECKING:  # pragma: no cover - type hinting helper
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

LOCAL_CLIENT_SENTINELS: Final[set[str]] = {
    "127.0.0.1",
    "localhost",
    "::1",
    "testclient",
    "::ffff:127.0.0.1",
}

bearer_scheme = HTTPBearer(auto_error=False)


def resolve_client_host(
    headers: Mapping[str, str],
    client_host: str | None,
) -> str | None:
    """Resolve the client host honoring proxy headers when present.

    Args:
        headers: Request headers (case-insensitive mapping provided by Starlette).
        client_host: Host extracted from the ASGI scope.

    Returns:
        The best-effort remote address string or ``None`` when unavailable.

    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        candidate = forwarded.split(",", 1)[0].strip()
        if candidate:
            return candidate

    return client_host


def is_local_host(host: str | None) -> bool:
    """Return True when ``host`` represents a loopback address."""
    if host is None:
        return True

    normalized = host.strip().lower()
    if normalized in LOCAL_CLIENT_SENTINELS:
        return True

    return normalized.startswith(("127.", "::ffff:127."))


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=UnauthorizedError(message).to_detail(),
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_owner(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None,
        Depends(bearer_scheme),
    ],
) -> str:
    """Resolve the bearer token of the request to its owner.

    Raises:
        HTTPException: 401 when the token is missing or unknown, 500 when the
            token table is misconfigured.

    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Missing bearer token")

    try:
        tokens = get_tokens()
    except ConfigError as e:
        logger.exception("Invalid token configuration")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        ) from e

    owner = tokens.get(credentials.credentials)
    if owner is None:
        logger.warning("Rejected request with an unknown token")
        raise _unauthorized("Invalid bearer token")
    return owner
