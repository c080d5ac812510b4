from typing import Protocol, runtime_checkable

from meetrag.core.models import SearchHit, SourceKind, VectorPoint


@runtime_checkable
class RetrievalIndex(Protocol):
    async def upsert(self, points: list[VectorPoint]) -> None: ...

    async def search(
        self,
        vector: list[float],
        *,
        session_id: str,
        source_kind: SourceKind,
        top_k: int,
    ) -> list[SearchHit]: ...
