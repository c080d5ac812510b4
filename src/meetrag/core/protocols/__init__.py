"""Contracts for the vendor capabilities meetrag consumes."""

from .audio_probe import AudioProbe
from .blob_store import BlobStore
from .embedding import EmbeddingProvider
from .generation import GenerationProvider
from .queue import Delivery, JobQueue
from .refinement import RefinementProvider
from .retrieval_index import RetrievalIndex
from .stt import STTProvider

__all__ = [
    "AudioProbe",
    "BlobStore",
    "Delivery",
    "EmbeddingProvider",
    "GenerationProvider",
    "JobQueue",
    "RefinementProvider",
    "RetrievalIndex",
    "STTProvider",
]
