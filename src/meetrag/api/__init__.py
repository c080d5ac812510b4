"""HTTP API for meetrag."""

from __future__ import annotations

from meetrag.api.app import create_app

__all__ = ["create_app"]
