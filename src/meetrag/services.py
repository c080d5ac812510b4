"""Wiring of meetrag components from configuration.

``Services`` owns the long-lived resources of a process (document store,
queue handle, providers) and builds the session manager, ingestion gateway,
chat orchestrator and pipeline workers on top of them. Vendor providers are
created on first use, so a process only needs keys for what it actually runs.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from meetrag.blob.local import LocalBlobStore
from meetrag.chat import ChatOrchestrator
from meetrag.core.config import MeetRAGConfig
from meetrag.core.logging_config import get_logger
from meetrag.core.protocols import (
    AudioProbe,
    BlobStore,
    EmbeddingProvider,
    GenerationProvider,
    RefinementProvider,
    RetrievalIndex,
    STTProvider,
)
from meetrag.core.provider_factory import (
    create_embedding_provider,
    create_generation_provider,
    create_refinement_provider,
    create_retrieval_index,
    create_stt_provider,
)
from meetrag.core.state import DocumentStore
from meetrag.gateway import IngestionGateway
from meetrag.probe import FFprobeAudioProbe
from meetrag.queue.sqlite import SqliteJobQueue
from meetrag.sessions import SessionManager
from meetrag.worker import PipelineWorker

logger = get_logger(__name__)


class Services:
    """Container for the components of one meetrag process."""

    def __init__(
        self,
        config: MeetRAGConfig,
        *,
        store: DocumentStore | None = None,
        blob_store: BlobStore | None = None,
        probe: AudioProbe | None = None,
        stt: STTProvider | None = None,
        refiner: RefinementProvider | None = None,
        embedder: EmbeddingProvider | None = None,
        index: RetrievalIndex | None = None,
        generator: GenerationProvider | None = None,
        queue_factory: Callable[[], SqliteJobQueue] | None = None,
    ) -> None:
        self.config = config
        self.store = store or DocumentStore(config.database_path)
        self.blob_store = blob_store or LocalBlobStore(config.blob_dir)
        self.probe = probe or FFprobeAudioProbe(ffprobe_path=config.ffprobe_path)
        self._queue_factory = queue_factory or self._default_queue
        self.queue = self._queue_factory()
        self._providers: dict[str, Any] = {
            name: provider
            for name, provider in (
                ("stt", stt),
                ("refiner", refiner),
                ("embedder", embedder),
                ("index", index),
                ("generator", generator),
            )
            if provider is not None
        }
        self._worker_queues: list[SqliteJobQueue] = []
        self._chat: ChatOrchestrator | None = None

        self.sessions = SessionManager(self.store)
        self.gateway = IngestionGateway(
            store=self.store,
            blob_store=self.blob_store,
            queue=self.queue,
            probe=self.probe,
            max_chunk_bytes=config.max_chunk_bytes,
            max_chunk_duration_seconds=config.max_chunk_duration_seconds,
            allowed_formats=config.allowed_audio_formats,
            publish_retry_config=config.publish_retry_config(),
        )

    @classmethod
    def from_config(cls, config: MeetRAGConfig | None = None, **overrides: Any) -> Services:
        return cls(config or MeetRAGConfig(), **overrides)

    def _default_queue(self) -> SqliteJobQueue:
        return SqliteJobQueue(
            self.config.queue_database_path,
            queue_name=self.config.queue_name,
            poll_interval_seconds=self.config.queue_poll_interval_seconds,
            visibility_timeout_seconds=self.config.queue_visibility_timeout_seconds,
        )

    def _provider(self, name: str, factory: Callable[..., Any]) -> Any:
        if name not in self._providers:
            self._providers[name] = factory(self.config, self.config.provider_retry_config())
            logger.debug("provider_created", role=name, provider=type(self._providers[name]).__name__)
        return self._providers[name]

    # -- Providers (created on first use) --

    @property
    def stt(self) -> STTProvider:
        return self._provider("stt", create_stt_provider)

    @property
    def refiner(self) -> RefinementProvider:
        return self._provider("refiner", create_refinement_provider)

    @property
    def embedder(self) -> EmbeddingProvider:
        return self._provider("embedder", create_embedding_provider)

    @property
    def index(self) -> RetrievalIndex:
        return self._provider("index", create_retrieval_index)

    @property
    def generator(self) -> GenerationProvider:
        return self._provider("generator", create_generation_provider)

    @property
    def chat(self) -> ChatOrchestrator:
        if self._chat is None:
            self._chat = ChatOrchestrator(
                store=self.store,
                embedder=self.embedder,
                index=self.index,
                generator=self.generator,
                transcript_top_k=self.config.transcript_top_k,
                chat_top_k=self.config.chat_top_k,
                heartbeat_interval_seconds=self.config.heartbeat_interval_seconds,
                generation_max_attempts=self.config.generation_max_attempts,
            )
        return self._chat

    # -- Lifecycle --

    async def start(self) -> None:
        """Open the document store and the publishing queue handle."""
        await self.store.initialize()
        await self.queue.connect()
        logger.info("services_started", database_path=str(self.store.db_path))

    async def open_worker(self, name: str = "worker") -> PipelineWorker:
        """Create a pipeline worker with its own queue handle."""
        queue = self._queue_factory()
        await queue.connect()
        self._worker_queues.append(queue)
        return PipelineWorker(
            queue=queue,
            store=self.store,
            blob_store=self.blob_store,
            stt=self.stt,
            refiner=self.refiner,
            embedder=self.embedder,
            index=self.index,
            name=name,
        )

    async def close(self) -> None:
        if self._chat is not None:
            await self._chat.drain()
        for queue in self._worker_queues:
            await queue.close()
        self._worker_queues.clear()
        await self.queue.close()
        await self.store.close()
        logger.info("services_closed")

    async def __aenter__(self) -> Services:
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
