from typing import Protocol, runtime_checkable

from meetrag.core.models import RefinedChunk


@runtime_checkable
class RefinementProvider(Protocol):
    """Turns raw transcript text into bounded chunks with summaries."""

    async def refine(self, text: str) -> list[RefinedChunk]: ...
