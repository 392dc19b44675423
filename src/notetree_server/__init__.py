"""notetree HTTP API (FastAPI)."""
