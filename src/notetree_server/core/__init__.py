"""Server infrastructure: dependencies and middleware."""
