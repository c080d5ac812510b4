"""Shared pytest fixtures and in-memory fakes for the meetrag test suite."""

import asyncio
import hashlib
import math
from collections.abc import AsyncGenerator, AsyncIterator
from pathlib import Path

import pytest

from meetrag.blob.local import LocalBlobStore
from meetrag.core.config import MeetRAGConfig
from meetrag.core.exceptions import ChunkValidationError
from meetrag.core.models import (
    AudioProbeResult,
    SearchHit,
    SourceKind,
    TranscriptionHints,
    VectorPoint,
)
from meetrag.core.retry_config import RetryConfig
from meetrag.core.state import DocumentStore
from meetrag.gateway import IngestionGateway
from meetrag.queue.sqlite import SqliteJobQueue
from meetrag.refine.passthrough import PassthroughRefiner
from meetrag.worker import PipelineWorker

FAST_RETRY = RetryConfig(max_attempts=3, min_wait_seconds=0, max_wait_seconds=0, exponential_multiplier=0)

# ============================================================================
# Fakes
# ============================================================================


class FakeProbe:
    """AudioProbe returning a fixed result, or raising a fixed error."""

    def __init__(
        self,
        duration_seconds: float = 30.0,
        format_names: list[str] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.result = AudioProbeResult(
            duration_seconds=duration_seconds,
            format_names=format_names if format_names is not None else ["matroska", "webm"],
        )
        self.error = error
        self.calls: list[str] = []

    async def probe(self, data: bytes, filename: str) -> AudioProbeResult:
        self.calls.append(filename)
        if self.error is not None:
            raise self.error
        return self.result


class FakeTranscriber:
    """STTProvider that decodes the audio bytes as the spoken text."""

    def __init__(self, error: Exception | None = None, text: str | None = None) -> None:
        self.error = error
        self.text = text
        self.calls: list[TranscriptionHints] = []
        self.gate: asyncio.Event | None = None

    async def transcribe(self, data: bytes, hints: TranscriptionHints) -> str:
        self.calls.append(hints)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if self.text is not None:
            return self.text
        return data.decode("utf-8", errors="ignore")


class FakeEmbedder:
    """Deterministic bag-of-words embedder.

    Each word is hashed into one of ``dimensions`` buckets, so texts sharing
    words have a positive cosine similarity.
    """

    def __init__(self, dimensions: int = 64, error: Exception | None = None) -> None:
        self.dimensions = dimensions
        self.error = error
        self.calls: list[list[str]] = []

    def vector_for(self, text: str) -> list[float]:
        vector = [0.0] * self.dimensions
        for word in text.lower().split():
            word = word.strip(".,!?\"'")
            if not word:
                continue
            bucket = int(hashlib.sha256(word.encode()).hexdigest(), 16) % self.dimensions
            vector[bucket] += 1.0
        if not any(vector):
            vector[0] = 1.0
        return vector

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.error is not None:
            raise self.error
        return [self.vector_for(text) for text in texts]


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b, strict=True))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class InMemoryIndex:
    """RetrievalIndex keeping points in a dict; honours session and kind filters."""

    def __init__(self) -> None:
        self.points: dict[str, VectorPoint] = {}
        self.upsert_calls = 0

    async def upsert(self, points: list[VectorPoint]) -> None:
        self.upsert_calls += 1
        for point in points:
            self.points[point.id] = point

    async def search(
        self,
        vector: list[float],
        *,
        session_id: str,
        source_kind: SourceKind,
        top_k: int,
    ) -> list[SearchHit]:
        candidates = [
            SearchHit(id=point.id, score=_cosine(vector, point.vector), payload=point.payload)
            for point in self.points.values()
            if point.payload.session_id == session_id and point.payload.source_kind == source_kind
        ]
        candidates.sort(key=lambda hit: hit.score, reverse=True)
        return candidates[:top_k]

    def of_kind(self, session_id: str, source_kind: SourceKind) -> list[VectorPoint]:
        return [
            point
            for point in self.points.values()
            if point.payload.session_id == session_id and point.payload.source_kind == source_kind
        ]


class LeakyIndex(InMemoryIndex):
    """Index that ignores the session filter, to exercise the orchestrator's own check."""

    async def search(
        self,
        vector: list[float],
        *,
        session_id: str,
        source_kind: SourceKind,
        top_k: int,
    ) -> list[SearchHit]:
        hits = [
            SearchHit(id=point.id, score=_cosine(vector, point.vector), payload=point.payload)
            for point in self.points.values()
            if point.payload.source_kind == source_kind
        ]
        return hits[:top_k]


class FakeGenerator:
    """GenerationProvider replaying scripted answers, one script per call.

    A script is a list of fragments. An Exception instance in a script is
    raised when reached; a float is slept for that many seconds.
    """

    def __init__(self, *scripts: list) -> None:
        self.scripts = list(scripts) or [["The answer."]]
        self.prompts: list[str] = []
        self.closed = 0

    async def stream(self, prompt: str, *, system_prompt: str) -> AsyncIterator[str]:
        self.prompts.append(prompt)
        script = self.scripts.pop(0) if len(self.scripts) > 1 else self.scripts[0]
        try:
            for item in script:
                if isinstance(item, Exception):
                    raise item
                if isinstance(item, float):
                    await asyncio.sleep(item)
                    continue
                yield item
        finally:
            self.closed += 1


class RecordingBlobStore(LocalBlobStore):
    """LocalBlobStore that counts deletes per reference."""

    def __init__(self, root: Path) -> None:
        super().__init__(root)
        self.deletes: dict[str, int] = {}

    async def delete(self, ref: str) -> bool:
        self.deletes[ref] = self.deletes.get(ref, 0) + 1
        return await super().delete(ref)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def config(tmp_path: Path) -> MeetRAGConfig:
    """Configuration pointing every storage path into tmp_path."""
    return MeetRAGConfig(
        _env_file=None,
        database_path=str(tmp_path / "meetrag.db"),
        queue_database_path=str(tmp_path / "queue.db"),
        blob_dir=tmp_path / "uploads",
        chromadb_persist_directory=str(tmp_path / "chroma"),
        refinement_provider="passthrough",
        queue_poll_interval_seconds=0.01,
        publish_min_wait_seconds=0,
        publish_max_wait_seconds=0,
        heartbeat_interval_seconds=5.0,
    )


# ============================================================================
# Component Fixtures
# ============================================================================


@pytest.fixture
async def store(tmp_path: Path) -> AsyncGenerator[DocumentStore, None]:
    """Initialized DocumentStore on a temporary database."""
    document_store = DocumentStore(tmp_path / "meetrag.db")
    await document_store.initialize()
    yield document_store
    await document_store.close()


@pytest.fixture
async def queue(tmp_path: Path) -> AsyncGenerator[SqliteJobQueue, None]:
    """Connected SqliteJobQueue with a short poll interval."""
    job_queue = SqliteJobQueue(tmp_path / "queue.db", poll_interval_seconds=0.01)
    await job_queue.connect()
    yield job_queue
    await job_queue.close()


@pytest.fixture
def blob_store(tmp_path: Path) -> RecordingBlobStore:
    return RecordingBlobStore(tmp_path / "uploads")


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def index() -> InMemoryIndex:
    return InMemoryIndex()


@pytest.fixture
def refiner() -> PassthroughRefiner:
    return PassthroughRefiner(max_chunk_chars=200)


@pytest.fixture
def gateway(
    store: DocumentStore,
    blob_store: RecordingBlobStore,
    queue: SqliteJobQueue,
    probe: FakeProbe,
) -> IngestionGateway:
    return IngestionGateway(
        store=store,
        blob_store=blob_store,
        queue=queue,
        probe=probe,
        max_chunk_bytes=1024,
        max_chunk_duration_seconds=900,
        allowed_formats=["webm", "matroska", "wav", "mp3"],
        publish_retry_config=FAST_RETRY,
    )


@pytest.fixture
def worker(
    store: DocumentStore,
    blob_store: RecordingBlobStore,
    queue: SqliteJobQueue,
    transcriber: FakeTranscriber,
    refiner: PassthroughRefiner,
    embedder: FakeEmbedder,
    index: InMemoryIndex,
) -> PipelineWorker:
    return PipelineWorker(
        queue=queue,
        store=store,
        blob_store=blob_store,
        stt=transcriber,
        refiner=refiner,
        embedder=embedder,
        index=index,
        name="test-worker",
    )


# ============================================================================
# Helpers
# ============================================================================


class FailingQueue:
    """JobQueue whose publish always fails with a transient error."""

    def __init__(self, error: Exception) -> None:
        self.error = error
        self.publish_calls = 0

    async def publish(self, body: str) -> str:
        self.publish_calls += 1
        raise self.error

    async def claim(self):
        return None

    async def consume(self, handler) -> None:
        return None

    def stop(self) -> None:
        return None


def undecodable() -> ChunkValidationError:
    return ChunkValidationError("Audio could not be decoded", reason="undecodable")
