"""Session, audio upload and transcript routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile, status

from meetrag.api.dependencies import get_gateway, get_session_manager
from meetrag.api.schemas import AcceptedResponse, SessionResponse, TranscriptResponse
from meetrag.core.models import DeclaredMetadata, Session
from meetrag.gateway import IngestionGateway
from meetrag.sessions import SessionManager

router = APIRouter()


def _session_response(session: Session) -> SessionResponse:
    return SessionResponse(
        session_id=session.session_id,
        status=session.status,
        created_at=session.created_at,
        completed_at=session.completed_at,
    )


@router.post("/sessions", status_code=status.HTTP_201_CREATED, response_model=SessionResponse)
async def start_session(sessions: SessionManager = Depends(get_session_manager)) -> SessionResponse:
    return _session_response(await sessions.start_session())


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    sessions: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    return _session_response(await sessions.get_session(session_id))


@router.post("/sessions/{session_id}/stop", response_model=SessionResponse)
async def stop_session(
    session_id: str,
    sessions: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    """Complete the session. Queued chunks for it will be discarded."""
    return _session_response(await sessions.stop_session(session_id))


@router.post(
    "/sessions/{session_id}/audio",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=AcceptedResponse,
    summary="Upload one audio chunk for transcription",
)
async def upload_audio(
    session_id: str,
    audio: UploadFile = File(...),
    gateway: IngestionGateway = Depends(get_gateway),
) -> AcceptedResponse:
    data = await audio.read()
    declared = DeclaredMetadata(
        original_name=audio.filename or "chunk",
        mime_type=audio.content_type,
    )
    accepted = await gateway.submit_chunk(session_id, data, declared)
    return AcceptedResponse(
        session_id=accepted.session_id,
        blob_ref=accepted.blob_ref,
        message_id=accepted.message_id,
    )


@router.get("/sessions/{session_id}/transcript", response_model=TranscriptResponse)
async def get_transcript(
    session_id: str,
    sessions: SessionManager = Depends(get_session_manager),
) -> TranscriptResponse:
    session = await sessions.get_transcript(session_id)
    return TranscriptResponse(
        session_id=session.session_id,
        status=session.status,
        chunks=session.transcript,
    )
