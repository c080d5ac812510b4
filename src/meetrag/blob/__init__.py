"""Blob storage for uploaded audio chunks."""

from __future__ import annotations

from meetrag.blob.local import LocalBlobStore

__all__ = ["LocalBlobStore"]
