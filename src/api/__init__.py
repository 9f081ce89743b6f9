"""HTTP API for IMPECKS-AI."""

from .app import create_app

__all__ = ["create_app"]
