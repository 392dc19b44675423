"""API router configuration."""

from fastapi import APIRouter

from notetree_server.api.endpoints import note

router = APIRouter()
router.include_router(note.router)
