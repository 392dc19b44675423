"""HTTP middleware enforcing the server's network policy."""

import logging
from collections.abc import Awaitable, Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse

from notetree.config import allow_remote
from notetree.errors import UnauthorizedError
from notetree_server.core.security import is_local_host, resolve_client_host

logger = logging.getLogger(__name__)


async def security_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Enforce security policies."""
    # Localhost binding check (unless disabled via env var)
    client_host = resolve_client_host(
        request.headers,
        request.client.host if request.client else None,
    )

    if not allow_remote() and not is_local_host(client_host):
        logger.warning("Blocking remote request from %s", client_host)
        response: Response = JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={
                "detail": UnauthorizedError(
                    "Remote access is disabled. Set NOTETREE_ALLOW_REMOTE=true only"
                    " on trusted networks.",
                ).to_detail(),
            },
        )
    else:
        response = await call_next(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    return response
