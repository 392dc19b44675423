"""Request payload models."""
