"""Tests for search excerpts, pagination and statistics."""

from datetime import UTC, datetime, timedelta

from notetree.models import Folder, Leaf
from notetree.search import build_excerpt, compute_stats, paginate

NOW = datetime(2026, 3, 8, 12, 0, tzinfo=UTC)


def _leaf(node_id: str, name: str, content: str = "", **extra: object) -> Leaf:
    return Leaf(
        id=node_id,
        owner="alice",
        name=name,
        content=content,
        created_at=extra.pop("created_at", NOW),  # type: ignore[arg-type]
        updated_at=extra.pop("updated_at", NOW),  # type: ignore[arg-type]
        **extra,
    )


def test_excerpt_highlights_first_match_with_context() -> None:
    excerpt = build_excerpt("meeting minutes for monday", "MINUTES")
    assert excerpt == "meeting <strong>minutes</strong> for monda..."


def test_excerpt_widens_at_the_end() -> None:
    content = "x" * 30 + "end"
    excerpt = build_excerpt(content, "end")
    assert excerpt == "..." + "x" * 17 + "<strong>end</strong>"


def test_excerpt_without_match_uses_head() -> None:
    assert build_excerpt("abcdefghijklmnopqrstuvwxyz", "zzz") == (
        "abcdefghijklmnopqrst..."
    )
    assert build_excerpt("short", "zzz") == "short"


def test_paginate_reports_more_pages() -> None:
    leaves = [_leaf(f"n{i}", f"plan {i}") for i in range(3)]

    first = paginate(leaves, "plan", page=1, limit=2)
    second = paginate(leaves, "plan", page=2, limit=2)

    assert [hit.id for hit in first.data] == ["n0", "n1"]
    assert first.has_more
    assert [hit.id for hit in second.data] == ["n2"]
    assert not second.has_more


def test_paginate_matches_content_and_ignores_blank_query() -> None:
    leaves = [_leaf("a", "Groceries", "buy milk"), _leaf("b", "Todo", "call bob")]

    page = paginate(leaves, "MILK")

    assert [hit.id for hit in page.data] == ["a"]
    assert page.data[0].excerpt == "buy <strong>milk</strong>"
    assert paginate(leaves, "   ").data == []


def test_stats_counts_and_activity() -> None:
    nodes = [
        _leaf("fresh", "Fresh", "x" * 70),
        _leaf(
            "old",
            "Old",
            created_at=NOW - timedelta(days=30),
            updated_at=NOW - timedelta(days=30),
        ),
        _leaf("gone", "Gone", deleted_at=NOW),
        Folder(id="f", owner="alice", name="F", created_at=NOW, updated_at=NOW),
    ]

    result = compute_stats(nodes, NOW)

    assert result["stats"] == {"total": 2, "folders": 1, "trash": 1, "recent": 1}
    assert [note["id"] for note in result["recent_notes"]] == ["fresh", "old"]
    assert result["recent_notes"][0]["content"] == "x" * 60 + "..."
    activity = result["activity"]
    assert len(activity) == 7
    assert activity[-1] == {"date": "2026-03-08", "count": 2}
