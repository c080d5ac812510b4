"""Core meetrag components.

Configuration, models, protocols, exceptions and persistence shared by the
API process and the pipeline workers.
"""

from __future__ import annotations

from meetrag.core.config import MeetRAGConfig
from meetrag.core.exceptions import (
    ChunkValidationError,
    ConfigurationError,
    GenerationEmptyError,
    MeetRAGError,
    MessageDecodeError,
    NotFoundError,
    PersistenceError,
    ProcessingFailure,
    ProviderError,
    SessionStateError,
    TransientInfraError,
)
from meetrag.core.logging_config import Timer, configure_logging, get_logger
from meetrag.core.models import (
    Accepted,
    AudioProbeResult,
    ChatTurn,
    DeclaredMetadata,
    JobMetadata,
    JobOutcome,
    RefinedChunk,
    SearchHit,
    Session,
    SessionStatus,
    SourceKind,
    TranscribeChunk,
    TranscriptionHints,
    VectorPayload,
    VectorPoint,
)
from meetrag.core.protocols import (
    AudioProbe,
    BlobStore,
    Delivery,
    EmbeddingProvider,
    GenerationProvider,
    JobQueue,
    RefinementProvider,
    RetrievalIndex,
    STTProvider,
)
from meetrag.core.retry_config import RetryConfig, create_retry_decorator
from meetrag.core.state import DocumentStore

__all__ = [
    # Models
    "Accepted",
    # Protocols
    "AudioProbe",
    "AudioProbeResult",
    "BlobStore",
    "ChatTurn",
    # Exceptions
    "ChunkValidationError",
    "ConfigurationError",
    "DeclaredMetadata",
    "Delivery",
    # State
    "DocumentStore",
    "EmbeddingProvider",
    "GenerationEmptyError",
    "GenerationProvider",
    "JobMetadata",
    "JobOutcome",
    "JobQueue",
    # Config
    "MeetRAGConfig",
    "MeetRAGError",
    "MessageDecodeError",
    "NotFoundError",
    "PersistenceError",
    "ProcessingFailure",
    "ProviderError",
    "RefinedChunk",
    "RefinementProvider",
    "RetrievalIndex",
    # Retry
    "RetryConfig",
    "STTProvider",
    "SearchHit",
    "Session",
    "SessionStateError",
    "SessionStatus",
    "SourceKind",
    # Logging
    "Timer",
    "TranscribeChunk",
    "TranscriptionHints",
    "TransientInfraError",
    "VectorPayload",
    "VectorPoint",
    "configure_logging",
    "create_retry_decorator",
    "get_logger",
]
