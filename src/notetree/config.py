"""Configuration settings read from the environment."""

import os
from pathlib import Path

DEFAULT_ROOT = ".notetree"
DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_CONTENT_LENGTH = 100_000


class ConfigError(ValueError):
    """Raised when an environment variable holds an unusable value."""


def get_root_path() -> str:
    """Get the store root (local path or fsspec URL)."""
    return os.environ.get("NOTETREE_ROOT", str(Path.cwd() / DEFAULT_ROOT))


def get_owner() -> str | None:
    """Get the owner used by the CLI in local mode."""
    return os.environ.get("NOTETREE_OWNER") or None


def get_api_url() -> str | None:
    """Get the API base URL used by the CLI in remote mode."""
    return os.environ.get("NOTETREE_API_URL") or None


def get_api_token() -> str | None:
    """Get the bearer token used by the CLI in remote mode."""
    return os.environ.get("NOTETREE_TOKEN") or None


def get_timeout() -> float:
    """Get the per-request timeout in seconds for store calls."""
    raw = os.environ.get("NOTETREE_TIMEOUT")
    if not raw:
        return DEFAULT_TIMEOUT
    try:
        value = float(raw)
    except ValueError as e:
        msg = f"NOTETREE_TIMEOUT must be a number, got {raw!r}"
        raise ConfigError(msg) from e
    if value <= 0:
        msg = f"NOTETREE_TIMEOUT must be positive, got {raw!r}"
        raise ConfigError(msg)
    return value


def get_max_content_length() -> int:
    """Get the maximum accepted note content length."""
    raw = os.environ.get("NOTETREE_MAX_CONTENT_LENGTH")
    if not raw:
        return DEFAULT_MAX_CONTENT_LENGTH
    try:
        return int(raw)
    except ValueError as e:
        msg = f"NOTETREE_MAX_CONTENT_LENGTH must be an integer, got {raw!r}"
        raise ConfigError(msg) from e


def get_tokens() -> dict[str, str]:
    """Get the server's bearer token to owner map.

    ``NOTETREE_TOKENS`` holds comma-separated ``token=owner`` pairs.
    """
    raw = os.environ.get("NOTETREE_TOKENS", "")
    tokens: dict[str, str] = {}
    for pair in raw.split(","):
        pair = pair.strip()  # noqa: PLW2901
        if not pair:
            continue
        token, sep, owner = pair.partition("=")
        if not sep or not token.strip() or not owner.strip():
            msg = f"NOTETREE_TOKENS entries must look like token=owner, got {pair!r}"
            raise ConfigError(msg)
        tokens[token.strip()] = owner.strip()
    return tokens


def allow_remote() -> bool:
    """Whether the server accepts requests from non-loopback clients."""
    return os.environ.get("NOTETREE_ALLOW_REMOTE", "false").lower() == "true"


def get_allowed_origins() -> list[str]:
    """Get the CORS origins (``ALLOW_ORIGIN``, comma-separated)."""
    return (os.environ.get("ALLOW_ORIGIN") or "http://localhost:3000").split(",")


def get_log_level() -> str:
    """Get the log level name for :func:`notetree.logging_utils.setup_logging`."""
    return os.environ.get("NOTETREE_LOG_LEVEL", "INFO").upper()
