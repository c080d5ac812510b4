"""Configuration management for meetrag using pydantic-settings."""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from meetrag.core.retry_config import RetryConfig


class MeetRAGConfig(BaseSettings):
    """meetrag configuration with environment variable support.

    All settings use the MEETRAG_ env prefix. Provider-specific model
    defaults live on the provider constructors; the values here override them
    when set.
    """

    model_config = SettingsConfigDict(
        env_prefix="MEETRAG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -- Provider Selection --
    stt_provider: Literal["groq", "openai"] = "groq"
    refinement_provider: Literal["groq", "passthrough"] = "groq"
    embedding_provider: Literal["openai", "gemini"] = "gemini"
    generation_provider: Literal["gemini", "openai"] = "gemini"

    # -- API Keys --
    openai_api_key: str = ""
    groq_api_key: str = ""
    google_api_key: str = ""

    # -- Model Configuration --
    stt_model: str | None = None
    stt_language: str | None = None
    refinement_model: str | None = None
    embedding_model: str | None = None
    generation_model: str | None = None

    # -- Storage --
    database_path: str = "meetrag.db"
    queue_database_path: str = "meetrag_queue.db"
    queue_name: str = "audio_queue"
    blob_dir: Path = Path("./uploads")
    chromadb_persist_directory: str = "./chroma_db"
    chromadb_collection_name: str = "meetrag"

    # -- Ingestion Limits --
    max_chunk_bytes: int = 25 * 1024 * 1024
    max_chunk_duration_seconds: float = 15 * 60
    allowed_audio_formats: list[str] = Field(
        default_factory=lambda: [
            "mp3",
            "wav",
            "ogg",
            "webm",
            "matroska",
            "mov",
            "mp4",
            "m4a",
            "flac",
            "aac",
        ]
    )
    ffprobe_path: str = "ffprobe"

    # -- Retrieval and Chat --
    transcript_top_k: int = 5
    chat_top_k: int = 3
    heartbeat_interval_seconds: float = 15.0
    generation_max_attempts: int = 2
    generation_temperature: float = 0.2
    generation_max_output_tokens: int = 1024

    # -- Refinement --
    refinement_max_chunk_chars: int = 1200

    # -- Queue --
    queue_poll_interval_seconds: float = 1.0
    queue_visibility_timeout_seconds: float = 600.0

    # -- Publish Retry --
    publish_max_attempts: int = 4
    publish_min_wait_seconds: float = 0.5
    publish_max_wait_seconds: float = 8.0

    # -- Provider Retry --
    retry_max_attempts: int = 3
    retry_min_wait_seconds: float = 4.0
    retry_max_wait_seconds: float = 60.0
    retry_exponential_multiplier: float = 1.0

    # -- Logging --
    log_level: str = "INFO"
    log_format: str = "colored"
    log_timestamps: bool = True

    # -- API --
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    embedded_workers: int = 0

    @field_validator("allowed_audio_formats")
    @classmethod
    def _normalize_formats(cls, value: list[str]) -> list[str]:
        return [fmt.strip().lower() for fmt in value if fmt.strip()]

    @field_validator("generation_max_attempts", "transcript_top_k", "chat_top_k")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    def provider_retry_config(self) -> RetryConfig:
        """Retry policy applied to transient vendor SDK errors."""
        return RetryConfig(
            max_attempts=self.retry_max_attempts,
            min_wait_seconds=self.retry_min_wait_seconds,
            max_wait_seconds=self.retry_max_wait_seconds,
            exponential_multiplier=self.retry_exponential_multiplier,
        )

    def publish_retry_config(self) -> RetryConfig:
        """Retry policy for publishing jobs to the durable queue."""
        return RetryConfig(
            max_attempts=self.publish_max_attempts,
            min_wait_seconds=self.publish_min_wait_seconds,
            max_wait_seconds=self.publish_max_wait_seconds,
            exponential_multiplier=0.5,
        )
