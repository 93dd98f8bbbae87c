"""Allow running as ``python -m blogsync``."""

from blogsync.cli import app

app()
