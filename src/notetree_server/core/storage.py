"""Node service wiring for request handlers."""

from __future__ import annotations

import logging
from functools import lru_cache

from notetree.config import get_max_content_length, get_root_path
from notetree.service import NodeService
from notetree.storage import NodeStore

logger = logging.getLogger(__name__)


@lru_cache(maxsize=8)
def _service_for(root: str, max_content_length: int) -> NodeService:
    logger.info("Opening node store at %s", root)
    return NodeService(NodeStore(root), max_content_length=max_content_length)


def get_service() -> NodeService:
    """Return the node service for the configured store root.

    Services are reused per root so the store's directory cache survives
    between requests.
    """
    return _service_for(get_root_path(), get_max_content_length())
