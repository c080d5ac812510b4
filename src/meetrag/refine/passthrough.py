"""Refiner that chunks text without calling a language model."""

from __future__ import annotations

from meetrag.core.logging_config import get_logger
from meetrag.core.models import RefinedChunk
from meetrag.refine.chunking import split_text, summarize_locally

logger = get_logger(__name__)


class PassthroughRefiner:
    """Splits raw transcript text on sentence boundaries.

    The summary of each chunk is its first sentence.
    """

    def __init__(self, *, max_chunk_chars: int = 1200) -> None:
        self._max_chunk_chars = max_chunk_chars

    async def refine(self, text: str) -> list[RefinedChunk]:
        chunks = [
            RefinedChunk(summary=summarize_locally(piece), text=piece)
            for piece in split_text(text, self._max_chunk_chars)
        ]
        logger.debug("refinement_completed", provider="passthrough", chunks_count=len(chunks))
        return chunks
