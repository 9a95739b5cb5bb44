"""HTTP API: status, permission resolution and gateway webhooks."""

from .app import create_app

__all__ = ["create_app"]
