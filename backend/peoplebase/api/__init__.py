"""HTTP API exposing the person repository."""

from .server import create_app

__all__ = ["create_app"]
