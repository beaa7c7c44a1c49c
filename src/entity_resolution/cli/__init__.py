"""Command-line interface for entity resolution."""

from .main import app

__all__ = ["app"]
