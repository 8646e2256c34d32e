"""Command line interface package."""

from .app import app

__all__ = ["app"]
