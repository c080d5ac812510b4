"""Request and response bodies of the HTTP API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from meetrag.core.models import ChatTurn, SessionStatus


class SessionResponse(BaseModel):
    session_id: str
    status: SessionStatus
    created_at: datetime
    completed_at: datetime | None = None


class TranscriptResponse(BaseModel):
    session_id: str
    status: SessionStatus
    chunks: list[str]


class AcceptedResponse(BaseModel):
    session_id: str
    blob_ref: str
    message_id: str
    status: str = "queued"


class ChatRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=4000)


class ChatHistoryResponse(BaseModel):
    session_id: str
    turns: list[ChatTurn]
