"""ChromaDB retrieval index."""

from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, cast

from meetrag.core.models import SearchHit, SourceKind, VectorPayload, VectorPoint
from meetrag.core.provider_base import ProviderMixin

if TYPE_CHECKING:
    from chromadb.api import ClientAPI
    from chromadb.api.models.Collection import Collection


def payload_to_metadata(payload: VectorPayload) -> dict[str, Any]:
    """Flatten a payload into ChromaDB metadata (scalars only, no None)."""
    raw = payload.model_dump(mode="json")
    return {key: value for key, value in raw.items() if value is not None}


def metadata_to_payload(metadata: dict[str, Any] | None, document: str | None) -> VectorPayload:
    data = dict(metadata or {})
    data.setdefault("text", document or "")
    if isinstance(data.get("timestamp"), str):
        data["timestamp"] = datetime.fromisoformat(data["timestamp"])
    return VectorPayload.model_validate(data)


class ChromaDBRetrievalIndex(ProviderMixin):
    """Retrieval index on a persistent ChromaDB collection (cosine space).

    Transcript and chat points share one collection and are told apart by
    the ``source_kind`` metadata field. Every query filters on the session id.
    """

    _provider_name: str = "chromadb_index"
    _retryable_exceptions: tuple[type[Exception], ...] = (
        ConnectionError,
        TimeoutError,
    )

    def __init__(
        self,
        *,
        persist_directory: str | Path,
        collection_name: str = "meetrag",
        retry_config: Any | None = None,
    ) -> None:
        super().__init__(model="chromadb", retry_config=retry_config)
        self._persist_directory = Path(persist_directory)
        self._collection_name = collection_name
        self._client: ClientAPI | None = None
        self._collection: Collection | None = None
        self._logger = self._logger.bind(
            collection_name=collection_name,
            persist_directory=str(persist_directory),
        )

    def _ensure_initialized(self) -> Collection:
        """Lazy initialization of ChromaDB client and collection."""
        if self._collection is None:
            import chromadb

            self._logger.debug("initializing_chromadb")
            client: ClientAPI = chromadb.PersistentClient(path=str(self._persist_directory))
            self._client = client
            self._collection = client.get_or_create_collection(
                name=self._collection_name,
                metadata={"hnsw:space": "cosine"},
            )
            self._logger.info("chromadb_initialized")
        return self._collection

    async def upsert(self, points: list[VectorPoint]) -> None:
        """Write points. Ids are fresh per point, so this never overwrites."""
        if not points:
            return
        operation_logger = self._logger.bind(operation="upsert", points_count=len(points))
        operation_logger.debug("upserting_points")

        retry_decorator = self._get_retry_decorator()

        @retry_decorator
        def _upsert_sync() -> None:
            collection = self._ensure_initialized()
            collection.upsert(
                ids=[point.id for point in points],
                embeddings=cast(Any, [point.vector for point in points]),
                metadatas=cast(Any, [payload_to_metadata(point.payload) for point in points]),
                documents=[point.payload.text for point in points],
            )

        try:
            await asyncio.to_thread(_upsert_sync)
        except Exception as e:
            raise await self._wrap_error(e, "upsert")
        operation_logger.info("points_upserted")

    async def search(
        self,
        vector: list[float],
        *,
        session_id: str,
        source_kind: SourceKind,
        top_k: int,
    ) -> list[SearchHit]:
        """Nearest points of one kind within one session, best first."""
        operation_logger = self._logger.bind(
            operation="search",
            session_id=session_id,
            source_kind=str(source_kind),
            top_k=top_k,
        )
        operation_logger.debug("searching_points")

        retry_decorator = self._get_retry_decorator()

        @retry_decorator
        def _search_sync() -> Any:
            collection = self._ensure_initialized()
            return collection.query(
                query_embeddings=cast(Any, [vector]),
                n_results=top_k,
                where={
                    "$and": [
                        {"session_id": {"$eq": session_id}},
                        {"source_kind": {"$eq": str(source_kind)}},
                    ]
                },
                include=cast(Any, ["metadatas", "documents", "distances"]),
            )

        try:
            results = await asyncio.to_thread(_search_sync)
        except Exception as e:
            raise await self._wrap_error(e, "search")

        hits = self._format_results(results)
        operation_logger.info("search_completed", results_count=len(hits))
        return hits

    def _format_results(self, results: Any) -> list[SearchHit]:
        """Turn a ChromaDB query result into hits; score is 1 - cosine distance."""
        hits: list[SearchHit] = []
        if not results["ids"] or not results["ids"][0]:
            return hits
        metadatas = results.get("metadatas") or [[]]
        documents = results.get("documents") or [[]]
        distances = results.get("distances") or [[]]
        for i, point_id in enumerate(results["ids"][0]):
            metadata = metadatas[0][i] if i < len(metadatas[0]) else {}
            document = documents[0][i] if i < len(documents[0]) else ""
            distance = distances[0][i] if i < len(distances[0]) else 0.0
            hits.append(
                SearchHit(
                    id=point_id,
                    score=1.0 - float(distance),
                    payload=metadata_to_payload(metadata, document),
                )
            )
        return hits
