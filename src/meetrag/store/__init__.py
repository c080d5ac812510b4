"""Retrieval index providers."""

from __future__ import annotations


def __getattr__(name: str):
    """Lazy import with clear error messages for missing dependencies."""
    if name == "ChromaDBRetrievalIndex":
        try:
            from meetrag.store.chromadb import ChromaDBRetrievalIndex

            return ChromaDBRetrievalIndex
        except ImportError:
            raise ImportError(
                "ChromaDBRetrievalIndex requires 'chromadb'. Install with: pip install chromadb"
            ) from None
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["ChromaDBRetrievalIndex"]
