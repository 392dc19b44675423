"""Substring search with highlighted excerpts, and note statistics."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import Leaf, Node

EXCERPT_CONTEXT = 10
EXCERPT_MIN_WIDTH = 20
HIGHLIGHT_OPEN = "<strong>"
HIGHLIGHT_CLOSE = "</strong>"
ELLIPSIS = "..."
RECENT_WINDOW_DAYS = 7
RECENT_NOTES_LIMIT = 6
RECENT_PREVIEW_LENGTH = 60


class SearchHit(BaseModel):
    """A matching leaf with its content replaced by an excerpt."""

    id: str
    name: str
    parent_id: str | None = None
    excerpt: str
    updated_at: datetime


class SearchPage(BaseModel):
    """One page of search results."""

    data: list[SearchHit]
    has_more: bool


def build_excerpt(content: str, query: str) -> str:
    """Return a short excerpt of ``content`` around ``query``.

    The first case-insensitive occurrence is wrapped in ``<strong>`` with ten
    characters of context on either side, widened to twenty characters at the
    edges. Truncated ends get an ellipsis. Content without a match yields its
    first twenty characters.
    """
    index = content.lower().find(query.lower())
    if index == -1:
        head = content[:EXCERPT_MIN_WIDTH]
        return head + ELLIPSIS if len(content) > EXCERPT_MIN_WIDTH else head

    start = max(0, index - EXCERPT_CONTEXT)
    end = min(len(content), index + len(query) + EXCERPT_CONTEXT)
    if end - start < EXCERPT_MIN_WIDTH:
        if start == 0:
            end = min(len(content), EXCERPT_MIN_WIDTH)
        elif end == len(content):
            start = max(0, len(content) - EXCERPT_MIN_WIDTH)

    match_end = index + len(query)
    excerpt = (
        content[start:index]
        + HIGHLIGHT_OPEN
        + content[index:match_end]
        + HIGHLIGHT_CLOSE
        + content[match_end:end]
    )
    if start > 0:
        excerpt = ELLIPSIS + excerpt
    if end < len(content):
        excerpt += ELLIPSIS
    return excerpt


def matches(leaf: Leaf, query: str) -> bool:
    """Case-insensitive literal substring match on name or content."""
    needle = query.lower()
    return needle in leaf.name.lower() or needle in leaf.content.lower()


def paginate(
    leaves: Sequence[Leaf],
    query: str,
    page: int = 1,
    limit: int = 10,
) -> SearchPage:
    """Filter ``leaves`` (already newest first) by ``query`` and cut one page."""
    if not query.strip():
        return SearchPage(data=[], has_more=False)

    page = max(page, 1)
    limit = max(limit, 1)
    hits = [leaf for leaf in leaves if matches(leaf, query)]
    skip = (page - 1) * limit
    window = hits[skip : skip + limit]
    return SearchPage(
        data=[
            SearchHit(
                id=leaf.id,
                name=leaf.name,
                parent_id=leaf.parent_id,
                excerpt=build_excerpt(leaf.content, query) if leaf.content else "",
                updated_at=leaf.updated_at,
            )
            for leaf in window
        ],
        has_more=skip + len(window) < len(hits),
    )


def _preview(content: str) -> str:
    if len(content) > RECENT_PREVIEW_LENGTH:
        return content[:RECENT_PREVIEW_LENGTH] + ELLIPSIS
    return content


def compute_stats(nodes: Sequence[Node], now: datetime) -> dict[str, Any]:
    """Summarize an owner's nodes for a dashboard.

    Args:
        nodes: Every node of the owner, active and trashed.
        now: Reference time (aware UTC) for the seven-day windows.

    Returns:
        ``stats`` counters, ``recent_notes`` previews and per-day
        ``activity`` for the last seven days (oldest first).

    """
    window_start = now - timedelta(days=RECENT_WINDOW_DAYS)
    active_leaves = [n for n in nodes if not n.is_folder and not n.is_trashed]
    active_leaves.sort(key=lambda n: n.updated_at, reverse=True)

    activity = []
    for offset in range(RECENT_WINDOW_DAYS - 1, -1, -1):
        day = (now - timedelta(days=offset)).date()
        count = sum(
            1 for n in nodes if not n.is_folder and n.created_at.date() == day
        )
        activity.append({"date": day.isoformat(), "count": count})

    return {
        "stats": {
            "total": len(active_leaves),
            "folders": sum(1 for n in nodes if n.is_folder and not n.is_trashed),
            "trash": sum(1 for n in nodes if n.is_trashed),
            "recent": sum(1 for n in active_leaves if n.updated_at >= window_start),
        },
        "recent_notes": [
            {
                "id": n.id,
                "name": n.name,
                "content": _preview(n.content),
                "created_at": n.created_at.isoformat(),
                "updated_at": n.updated_at.isoformat(),
            }
            for n in active_leaves[:RECENT_NOTES_LIMIT]
        ],
        "activity": activity,
    }
