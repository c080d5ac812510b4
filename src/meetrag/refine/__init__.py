"""Transcript refinement providers."""

from __future__ import annotations

from meetrag.refine.passthrough import PassthroughRefiner


def __getattr__(name: str):
    """Lazy import with clear error messages for missing dependencies."""
    if name == "GroqRefiner":
        try:
            from meetrag.refine.groq import GroqRefiner

            return GroqRefiner
        except ImportError:
            raise ImportError("GroqRefiner requires 'groq'. Install with: pip install groq") from None
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["GroqRefiner", "PassthroughRefiner"]
