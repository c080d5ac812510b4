"""Streaming generation providers."""

from __future__ import annotations


def __getattr__(name: str):
    """Lazy import with clear error messages for missing dependencies."""
    if name == "OpenAIGenerator":
        try:
            from meetrag.generate.openai import OpenAIGenerator

            return OpenAIGenerator
        except ImportError:
            raise ImportError("OpenAIGenerator requires 'openai'. Install with: pip install openai") from None
    if name == "GeminiGenerator":
        try:
            from meetrag.generate.gemini import GeminiGenerator

            return GeminiGenerator
        except ImportError:
            raise ImportError(
                "GeminiGenerator requires 'google-genai'. Install with: pip install google-genai"
            ) from None
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["GeminiGenerator", "OpenAIGenerator"]
