"""Markdown notes server: full-text search over a notes directory."""

__version__ = "0.1.0"
