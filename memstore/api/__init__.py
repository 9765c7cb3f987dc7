"""HTTP API for the memory store."""

from .main import create_app

__all__ = ["create_app"]
