"""Markdown use case manager."""

__version__ = "0.1.0"
