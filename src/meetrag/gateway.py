"""Ingestion gateway: validate, store and enqueue uploaded audio chunks."""

from __future__ import annotations

import uuid
from pathlib import PurePath
from typing import TYPE_CHECKING

from meetrag.core.exceptions import ChunkValidationError, NotFoundError, SessionStateError, TransientInfraError
from meetrag.core.logging_config import get_logger
from meetrag.core.models import (
    Accepted,
    AudioProbeResult,
    DeclaredMetadata,
    JobMetadata,
    SessionStatus,
    TranscribeChunk,
)
from meetrag.core.protocols import AudioProbe, BlobStore, JobQueue
from meetrag.core.retry_config import RETRY_CONFIG_PUBLISH, RetryConfig, create_retry_decorator
from meetrag.core.state import DocumentStore
from meetrag.queue.messages import encode_message

if TYPE_CHECKING:
    import structlog

logger = get_logger(__name__)

MIME_EXTENSIONS = {
    "audio/webm": ".webm",
    "video/webm": ".webm",
    "audio/ogg": ".ogg",
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/mp4": ".m4a",
    "audio/x-m4a": ".m4a",
    "audio/flac": ".flac",
    "audio/aac": ".aac",
}


def extension_for(declared: DeclaredMetadata) -> str:
    """File extension for a chunk, from its name or else its MIME type."""
    suffix = PurePath(declared.original_name).suffix.lower()
    if suffix:
        return suffix
    mime = (declared.mime_type or "").split(";")[0].strip().lower()
    return MIME_EXTENSIONS.get(mime, ".webm")


class IngestionGateway:
    """Accepts audio chunks for active sessions.

    A chunk is validated against size, duration and format limits before
    anything is written. Accepted chunks are stored as blobs and a
    transcription job is published; if publishing fails after retries the
    blob is deleted again, so a blob never exists without its job.
    """

    def __init__(
        self,
        *,
        store: DocumentStore,
        blob_store: BlobStore,
        queue: JobQueue,
        probe: AudioProbe,
        max_chunk_bytes: int = 25 * 1024 * 1024,
        max_chunk_duration_seconds: float = 900.0,
        allowed_formats: list[str] | None = None,
        publish_retry_config: RetryConfig | None = None,
    ) -> None:
        self._store = store
        self._blob_store = blob_store
        self._queue = queue
        self._probe = probe
        self._max_bytes = max_chunk_bytes
        self._max_duration = max_chunk_duration_seconds
        self._allowed_formats = {fmt.lower() for fmt in (allowed_formats or [])}
        self._publish_retry_config = publish_retry_config or RETRY_CONFIG_PUBLISH

    async def submit_chunk(self, session_id: str, data: bytes, declared: DeclaredMetadata) -> Accepted:
        """Validate, store and enqueue one audio chunk.

        Returns:
            Receipt with the blob reference and queue message id. Processing
            happens later in a pipeline worker.

        Raises:
            NotFoundError: Unknown session.
            SessionStateError: Session is already completed.
            ChunkValidationError: Chunk rejected; nothing was stored.
            TransientInfraError: Storage or queue unavailable; nothing is
                left behind.
        """
        log = logger.bind(session_id=session_id, original_name=declared.original_name)

        status = await self._store.get_session_status(session_id)
        if status is None:
            raise NotFoundError(f"Session {session_id} not found", entity_id=session_id)
        if status is not SessionStatus.ACTIVE:
            raise SessionStateError(
                f"Session {session_id} is {status}; audio is no longer accepted",
                session_id=session_id,
                status=str(status),
            )

        try:
            probed = await self._validate(data, declared)
        except ChunkValidationError as e:
            log.info("chunk_rejected", reason=e.reason, size_bytes=len(data))
            raise

        key = f"{session_id}/{uuid.uuid4()}{extension_for(declared)}"
        blob_ref = await self._blob_store.put(data, key)

        message = TranscribeChunk(
            session_id=session_id,
            blob_ref=blob_ref,
            metadata=JobMetadata(
                original_name=declared.original_name,
                mime_type=declared.mime_type,
                duration_seconds=probed.duration_seconds,
                size_bytes=len(data),
                format_names=probed.format_names,
            ),
        )

        try:
            message_id = await self._publish(encode_message(message))
        except Exception as e:
            log.error("chunk_enqueue_failed", blob_ref=blob_ref, error=str(e), error_type=type(e).__name__)
            await self._discard_blob(blob_ref, log)
            raise

        log.info(
            "chunk_accepted",
            blob_ref=blob_ref,
            message_id=message_id,
            duration_seconds=probed.duration_seconds,
            size_bytes=len(data),
        )
        return Accepted(session_id=session_id, blob_ref=blob_ref, message_id=message_id)

    async def _validate(self, data: bytes, declared: DeclaredMetadata) -> AudioProbeResult:
        if len(data) > self._max_bytes:
            raise ChunkValidationError(
                f"Audio chunk is too large ({len(data)} bytes, max {self._max_bytes})",
                reason="too_large",
            )
        if not data:
            raise ChunkValidationError("Audio chunk is empty", reason="undecodable")

        probed = await self._probe.probe(data, declared.original_name)

        if probed.duration_seconds > self._max_duration:
            raise ChunkValidationError(
                f"Audio chunk is too long ({probed.duration_seconds:.1f}s, max {self._max_duration:.0f}s)",
                reason="too_long",
            )
        if self._allowed_formats and not self._allowed_formats.intersection(probed.format_names):
            raise ChunkValidationError(
                f"Unsupported audio format: {','.join(probed.format_names)}",
                reason="unsupported_format",
            )
        return probed

    async def _discard_blob(self, blob_ref: str, log: structlog.stdlib.BoundLogger) -> None:
        try:
            removed = await self._blob_store.delete(blob_ref)
        except Exception as e:
            log.error("blob_cleanup_failed", blob_ref=blob_ref, error=str(e))
            return
        log.debug("blob_cleaned_up", blob_ref=blob_ref, blob_removed=removed)

    async def _publish(self, body: str) -> str:
        retry_decorator = create_retry_decorator(
            config=self._publish_retry_config,
            exception_types=(TransientInfraError,),
        )

        @retry_decorator
        async def _publish_with_retry() -> str:
            return await self._queue.publish(body)

        return await _publish_with_retry()
