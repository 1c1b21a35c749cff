"""HTTP front for the Fibonacci server."""

from .app import create_app

__all__ = ["create_app"]
