"""Utility functions for notetree."""

import json
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import fsspec
from fsspec.core import url_to_fs

ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


def validate_id(identifier: str, name: str) -> str:
    """Validate that an identifier contains only safe characters.

    Identifiers end up as path components in the store, so this doubles as
    the path traversal guard.

    Args:
        identifier: The string to validate.
        name: The name of the field (for error messages).

    Returns:
        The validated identifier.

    Raises:
        ValueError: If the identifier contains invalid characters.

    """
    if not identifier or not ID_PATTERN.match(identifier):
        msg = (
            f"Invalid {name}: {identifier}. "
            "Must be alphanumeric, hyphens, or underscores."
        )
        raise ValueError(msg)
    return str(identifier)


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def get_fs_and_path(
    root: str | Path,
    fs: fsspec.AbstractFileSystem | None = None,
) -> tuple[fsspec.AbstractFileSystem, str]:
    """Resolve ``root`` (local path or fsspec URL) to a filesystem and path."""
    if fs is not None:
        return fs, str(root)
    fs_obj, path = url_to_fs(str(root))
    return fs_obj, path


def fs_join(*parts: str) -> str:
    """Join path parts with forward slashes, as fsspec expects."""
    head, *rest = parts
    return "/".join([head.rstrip("/"), *(p.strip("/") for p in rest)])


def fs_read_json(fs: fsspec.AbstractFileSystem, path: str) -> dict[str, Any]:
    """Read a JSON document from ``path``."""
    with fs.open(path, "r", encoding="utf-8") as handle:
        return json.load(handle)


def fs_write_json(
    fs: fsspec.AbstractFileSystem,
    path: str,
    payload: dict[str, Any],
) -> None:
    """Write ``payload`` to ``path`` as indented JSON, replacing any old copy."""
    with fs.open(path, "w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2)
