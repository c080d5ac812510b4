"""Pipeline worker: turn queued audio chunks into transcript text and vectors.

Each delivery runs through a fixed sequence of Stage classes sharing a
JobContext. A stage may mark the job obsolete (the session completed), which
ends the run early without indexing anything. Whatever happens, the job's
blob is deleted exactly once and the delivery is settled: ack for processed
or obsolete jobs, nack without requeue for failures.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import TYPE_CHECKING, assert_never

from meetrag.core.exceptions import MessageDecodeError, ProcessingFailure
from meetrag.core.logging_config import Timer, get_logger
from meetrag.core.models import (
    JobOutcome,
    RefinedChunk,
    SessionStatus,
    SourceKind,
    TranscribeChunk,
    TranscriptionHints,
    VectorPayload,
    VectorPoint,
)
from meetrag.queue.messages import decode_message

if TYPE_CHECKING:
    import structlog

    from meetrag.core.protocols import (
        BlobStore,
        Delivery,
        EmbeddingProvider,
        JobQueue,
        RefinementProvider,
        RetrievalIndex,
        STTProvider,
    )
    from meetrag.core.state import DocumentStore

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Job context - mutable bag of data passed through the stages
# ---------------------------------------------------------------------------
@dataclass
class JobContext:
    """State of one transcription job as it moves through the stages."""

    job: TranscribeChunk
    logger: structlog.stdlib.BoundLogger

    audio: bytes | None = None
    text: str = ""
    chunks: list[RefinedChunk] = field(default_factory=list)
    point_ids: list[str] = field(default_factory=list)
    discard_reason: str | None = None

    @property
    def discarded(self) -> bool:
        return self.discard_reason is not None

    def discard(self, reason: str) -> None:
        self.discard_reason = reason
        self.logger.info("job_discarded", reason=reason)


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------
class Stage(ABC):
    """Abstract worker stage."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short, logging-friendly stage name (e.g. ``'transcribe'``)."""

    @abstractmethod
    async def execute(self, ctx: JobContext, worker: PipelineWorker) -> None:
        """Run the stage, mutating *ctx* in place."""


class CheckSessionStage(Stage):
    """Skip jobs whose session is gone or already completed."""

    @property
    def name(self) -> str:
        return "check_session"

    async def execute(self, ctx: JobContext, worker: PipelineWorker) -> None:
        status = await worker.store.get_session_status(ctx.job.session_id)
        if status is None:
            ctx.discard("session_missing")
        elif status is SessionStatus.COMPLETED:
            ctx.discard("session_completed")


class FetchBlobStage(Stage):
    @property
    def name(self) -> str:
        return "fetch_blob"

    async def execute(self, ctx: JobContext, worker: PipelineWorker) -> None:
        ctx.audio = await worker.blob_store.get(ctx.job.blob_ref)


class TranscribeStage(Stage):
    @property
    def name(self) -> str:
        return "transcribe"

    async def execute(self, ctx: JobContext, worker: PipelineWorker) -> None:
        assert ctx.audio is not None
        hints = TranscriptionHints(
            filename=PurePath(ctx.job.blob_ref).name,
            mime_type=ctx.job.metadata.mime_type,
        )
        with Timer(ctx.logger, "stage_transcribe", size_bytes=len(ctx.audio)) as timer:
            ctx.text = (await worker.stt.transcribe(ctx.audio, hints)).strip()
            timer.complete(text_length=len(ctx.text))
        if not ctx.text:
            ctx.logger.warning("empty_transcription")


class AppendTranscriptStage(Stage):
    """Append the text, re-checking in the same statement that the session is active."""

    @property
    def name(self) -> str:
        return "append_transcript"

    async def execute(self, ctx: JobContext, worker: PipelineWorker) -> None:
        if not ctx.text:
            return
        appended = await worker.store.append_transcript_chunk(ctx.job.session_id, ctx.text)
        if not appended:
            ctx.discard("session_completed_during_processing")


class RefineStage(Stage):
    @property
    def name(self) -> str:
        return "refine"

    async def execute(self, ctx: JobContext, worker: PipelineWorker) -> None:
        if not ctx.text:
            return
        with Timer(ctx.logger, "stage_refine") as timer:
            ctx.chunks = await worker.refiner.refine(ctx.text)
            timer.complete(chunks_count=len(ctx.chunks))


class IndexStage(Stage):
    """Embed refined chunks and write one fresh point per chunk."""

    @property
    def name(self) -> str:
        return "index"

    async def execute(self, ctx: JobContext, worker: PipelineWorker) -> None:
        if not ctx.chunks:
            return
        with Timer(ctx.logger, "stage_index", chunks_count=len(ctx.chunks)) as timer:
            vectors = await worker.embedder.embed([chunk.text for chunk in ctx.chunks])
            if len(vectors) != len(ctx.chunks):
                raise ValueError(f"Expected {len(ctx.chunks)} embeddings, got {len(vectors)}")
            points = [
                VectorPoint(
                    vector=vector,
                    payload=VectorPayload(
                        session_id=ctx.job.session_id,
                        source_kind=SourceKind.TRANSCRIPT,
                        text=chunk.text,
                        summary=chunk.summary or None,
                        original_name=ctx.job.metadata.original_name,
                    ),
                )
                for chunk, vector in zip(ctx.chunks, vectors, strict=True)
            ]
            await worker.index.upsert(points)
            ctx.point_ids = [point.id for point in points]
            timer.complete(points_count=len(points))


_DEFAULT_STAGES: tuple[Stage, ...] = (
    CheckSessionStage(),
    FetchBlobStage(),
    TranscribeStage(),
    AppendTranscriptStage(),
    RefineStage(),
    IndexStage(),
)


# ---------------------------------------------------------------------------
# Worker
# ---------------------------------------------------------------------------
class PipelineWorker:
    """Consumes transcription jobs one at a time."""

    def __init__(
        self,
        *,
        queue: JobQueue,
        store: DocumentStore,
        blob_store: BlobStore,
        stt: STTProvider,
        refiner: RefinementProvider,
        embedder: EmbeddingProvider,
        index: RetrievalIndex,
        stages: tuple[Stage, ...] = _DEFAULT_STAGES,
        name: str = "worker",
    ) -> None:
        self.queue = queue
        self.store = store
        self.blob_store = blob_store
        self.stt = stt
        self.refiner = refiner
        self.embedder = embedder
        self.index = index
        self._stages = stages
        self._logger = logger.bind(worker=name)

    async def run(self) -> None:
        """Process deliveries until stop() is called."""
        self._logger.info("worker_started")
        try:
            await self.queue.consume(self.process)
        finally:
            self._logger.info("worker_stopped")

    def stop(self) -> None:
        self.queue.stop()

    async def run_once(self) -> JobOutcome | None:
        """Claim and process at most one delivery.

        Returns:
            The outcome, or None when the queue had nothing to deliver
        """
        delivery = await self.queue.claim()
        if delivery is None:
            return None
        return await self.process(delivery)

    async def process(self, delivery: Delivery) -> JobOutcome:
        """Process and settle a single delivery."""
        log = self._logger.bind(message_id=delivery.message_id)
        try:
            message = decode_message(delivery.body)
        except MessageDecodeError as e:
            log.error("poison_message", error=str(e))
            await delivery.nack(requeue=False)
            return JobOutcome.FAILED

        match message:
            case TranscribeChunk():
                outcome = await self._process_transcription(message, log)
            case _:
                assert_never(message)

        if outcome is JobOutcome.FAILED:
            await delivery.nack(requeue=False)
        else:
            await delivery.ack()
        return outcome

    async def _process_transcription(
        self,
        job: TranscribeChunk,
        log: structlog.stdlib.BoundLogger,
    ) -> JobOutcome:
        ctx = JobContext(
            job=job,
            logger=log.bind(session_id=job.session_id, blob_ref=job.blob_ref),
        )
        try:
            await self._run_stages(ctx)
        except ProcessingFailure as e:
            ctx.logger.error(
                "job_failed",
                stage=e.stage,
                error=str(e.__cause__ or e),
                error_type=type(e.__cause__ or e).__name__,
            )
            outcome = JobOutcome.FAILED
        else:
            outcome = JobOutcome.DISCARDED if ctx.discarded else JobOutcome.PROCESSED
            if outcome is JobOutcome.PROCESSED:
                ctx.logger.info(
                    "job_processed",
                    text_length=len(ctx.text),
                    points_count=len(ctx.point_ids),
                )

        await self._delete_blob(ctx)
        return outcome

    async def _run_stages(self, ctx: JobContext) -> None:
        """Execute the stages in order until done or the job is discarded.

        Raises:
            ProcessingFailure: Wrapping the first stage error, tagged with
                the stage name.
        """
        for stage in self._stages:
            if ctx.discarded:
                return
            try:
                await stage.execute(ctx, self)
            except ProcessingFailure:
                raise
            except Exception as exc:
                raise ProcessingFailure(
                    f"Stage '{stage.name}' failed for {ctx.job.blob_ref}: {exc}",
                    stage=stage.name,
                    session_id=ctx.job.session_id,
                ) from exc

    async def _delete_blob(self, ctx: JobContext) -> None:
        """Remove the job's blob. Failures are logged; settlement is unaffected."""
        try:
            removed = await self.blob_store.delete(ctx.job.blob_ref)
        except Exception as e:
            ctx.logger.error("blob_delete_failed", error=str(e))
            return
        if not removed:
            ctx.logger.warning("blob_already_missing")


async def run_workers(workers: list[PipelineWorker]) -> None:
    """Run several workers concurrently until all of them stop."""
    await asyncio.gather(*(worker.run() for worker in workers))
