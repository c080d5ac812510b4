"""Pydantic data models for meetrag."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(UTC)


class SessionStatus(StrEnum):
    """Lifecycle of a live session. Transitions active -> completed once."""

    ACTIVE = "active"
    COMPLETED = "completed"


class Session(BaseModel):
    """A live recording session and its ordered transcript."""

    session_id: str
    created_at: datetime
    status: SessionStatus = SessionStatus.ACTIVE
    completed_at: datetime | None = None
    transcript: list[str] = Field(default_factory=list)


class DeclaredMetadata(BaseModel):
    """What the client says about an uploaded chunk."""

    original_name: str = "chunk"
    mime_type: str | None = None


class AudioProbeResult(BaseModel):
    """Container facts read from the audio bytes themselves."""

    duration_seconds: float
    format_names: list[str]


class JobMetadata(BaseModel):
    original_name: str
    mime_type: str | None = None
    duration_seconds: float
    size_bytes: int
    upload_time: datetime = Field(default_factory=utc_now)
    format_names: list[str] = Field(default_factory=list)


class TranscribeChunk(BaseModel):
    """Queued job: transcribe one stored audio chunk of a session."""

    kind: Literal["transcribe_chunk"] = "transcribe_chunk"
    session_id: str
    blob_ref: str
    metadata: JobMetadata


class Accepted(BaseModel):
    """Receipt returned once a chunk is stored and queued."""

    session_id: str
    blob_ref: str
    message_id: str


class TranscriptionHints(BaseModel):
    """Optional hints passed to the speech-to-text provider."""

    filename: str = "audio.webm"
    mime_type: str | None = None
    language: str | None = None


class ChatTurn(BaseModel):
    """One question/answer exchange. The answer is written at most once."""

    turn_id: str
    session_id: str
    created_at: datetime
    question_text: str
    answer_text: str | None = None
    answered_at: datetime | None = None


class SourceKind(StrEnum):
    TRANSCRIPT = "transcript"
    CHAT = "chat"


class VectorPayload(BaseModel):
    session_id: str
    source_kind: SourceKind
    text: str
    summary: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)
    turn_id: str | None = None
    original_name: str | None = None


class VectorPoint(BaseModel):
    """Immutable indexed item. Ids are fresh uuid4 values, never reused."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    vector: list[float]
    payload: VectorPayload


class SearchHit(BaseModel):
    id: str
    score: float
    payload: VectorPayload


class RefinedChunk(BaseModel):
    """A bounded piece of cleaned transcript text with a short summary."""

    summary: str
    text: str


class JobOutcome(StrEnum):
    """How the worker finished a delivery."""

    PROCESSED = "processed"
    DISCARDED = "discarded"
    FAILED = "failed"
