"""StudyMatch HTTP API."""

from .app import build_finder, create_app

__all__ = ["build_finder", "create_app"]
