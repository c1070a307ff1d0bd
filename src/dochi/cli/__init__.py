"""Command line interface for dochi."""

from .app import app, main

__all__ = ["app", "main"]
