"""Structured exception hierarchy for meetrag.

Exception Hierarchy:
    MeetRAGError (base)
    ├── ChunkValidationError
    ├── NotFoundError
    ├── SessionStateError
    ├── PersistenceError
    ├── TransientInfraError
    ├── ProcessingFailure
    ├── GenerationEmptyError
    ├── ProviderError
    ├── MessageDecodeError
    └── ConfigurationError

Usage:
    from meetrag.core.exceptions import ChunkValidationError, NotFoundError

    try:
        await gateway.submit_chunk(session_id, data, declared)
    except ChunkValidationError as e:
        logger.warning("chunk_rejected", reason=e.reason)
    except NotFoundError:
        ...
"""

from __future__ import annotations

from typing import Literal

ValidationReason = Literal["too_large", "too_long", "unsupported_format", "undecodable"]


class MeetRAGError(Exception):
    """Base exception class for all meetrag errors.

    All exceptions in the meetrag codebase inherit from this class so callers
    can catch every meetrag-specific error in a single except block.
    """

    pass


class ChunkValidationError(MeetRAGError):
    """Raised when a submitted audio chunk is rejected.

    Rejection happens synchronously and leaves no side effects: nothing is
    stored and nothing is published.

    Args:
        message: Human-readable error message.
        reason: Machine-readable rejection reason.

    Example:
        raise ChunkValidationError(
            "Audio chunk is too long (max 900s)",
            reason="too_long",
        )
    """

    def __init__(self, message: str, reason: ValidationReason) -> None:
        super().__init__(message)
        self.reason = reason


class NotFoundError(MeetRAGError):
    """Raised when a session (or other entity) does not exist.

    Args:
        message: Human-readable error message.
        entity: Kind of entity that was looked up (e.g. "session").
        entity_id: Identifier that was not found.
    """

    def __init__(self, message: str, entity: str = "session", entity_id: str | None = None) -> None:
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id


class SessionStateError(MeetRAGError):
    """Raised when a direct API call targets a session in the wrong state.

    Queued jobs for a completed session are discarded silently by the worker;
    this error is only raised for synchronous calls such as submitting audio
    to a completed session.
    """

    def __init__(self, message: str, session_id: str, status: str) -> None:
        super().__init__(message)
        self.session_id = session_id
        self.status = status


class PersistenceError(MeetRAGError):
    """Raised when the document store fails to read or write a record.

    Example:
        raise PersistenceError("Failed to create session: database is locked")
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)


class TransientInfraError(MeetRAGError):
    """Raised when infrastructure at the pre-enqueue boundary is unavailable.

    Publishing to the queue is retried on this error with exponential
    backoff because repeating a publish is safe.

    Args:
        message: Human-readable error message.
        component: Failing component (e.g. "queue", "blob_store").
    """

    def __init__(self, message: str, component: str) -> None:
        super().__init__(message)
        self.component = component


class ProcessingFailure(MeetRAGError):
    """Raised inside the pipeline worker when a job cannot be completed.

    Processing failures are never retried: the blob is removed and the
    message dropped. The failing stage is recorded for manual follow-up.

    Args:
        message: Human-readable error message.
        stage: Worker stage that failed (e.g. "transcribe", "index").
        session_id: Session the job belonged to, if known.
    """

    def __init__(self, message: str, stage: str, session_id: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage
        self.session_id = session_id


class GenerationEmptyError(MeetRAGError):
    """Raised when every generation attempt produced an empty answer."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Generation returned empty content after {attempts} attempt(s)")
        self.attempts = attempts


class ProviderError(MeetRAGError):
    """Exception raised when an external provider fails.

    Wraps errors from vendor SDKs (OpenAI, Groq, Gemini, ChromaDB, ffprobe)
    and indicates whether the error is transient.

    Args:
        message: Human-readable error message.
        provider: The name of the provider that failed (e.g. "groq_stt").
        retryable: Whether the error is transient and can be retried.
            Defaults to False.

    Example:
        raise ProviderError(
            "Groq API rate limit exceeded",
            provider="groq_stt",
            retryable=True,
        )
    """

    def __init__(self, message: str, provider: str, retryable: bool = False) -> None:
        super().__init__(message)
        self.provider = provider
        self.retryable = retryable


class MessageDecodeError(MeetRAGError):
    """Raised when a queued message body is not a known job variant."""

    def __init__(self, message: str, body: str | None = None) -> None:
        super().__init__(message)
        self.body = body


class ConfigurationError(MeetRAGError):
    """Exception raised when configuration validation fails.

    Example:
        raise ConfigurationError(
            "GROQ_API_KEY is required but not set. "
            "Please set the MEETRAG_GROQ_API_KEY environment variable."
        )
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)


__all__ = [
    "ChunkValidationError",
    "ConfigurationError",
    "GenerationEmptyError",
    "MeetRAGError",
    "MessageDecodeError",
    "NotFoundError",
    "PersistenceError",
    "ProcessingFailure",
    "ProviderError",
    "SessionStateError",
    "TransientInfraError",
    "ValidationReason",
]
