"""HTTP API for applications, invites and notifications."""

from .app import create_app

__all__ = ["create_app"]
