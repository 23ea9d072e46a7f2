"""JSON API for powerplan."""

from .app import create_app

__all__ = ["create_app"]
