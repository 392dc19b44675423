"""Main application module."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from notetree.config import get_allowed_origins
from notetree_server.api.api import router as api_router
from notetree_server.core.middleware import security_middleware

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="notetree")

# Allow CORS for frontend development
app.add_middleware(
    CORSMiddleware,  # type: ignore[arg-type]
    # ALLOW_ORIGIN (comma-separated) or fallback to localhost:3000 in development
    allow_origins=get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.middleware("http")(security_middleware)


@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe; needs no token."""
    return {"status": "ok"}


app.include_router(api_router)
