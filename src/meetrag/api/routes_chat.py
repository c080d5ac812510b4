"""Chat routes: streamed answers and chat history."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from meetrag.api.dependencies import get_chat, get_services
from meetrag.api.schemas import ChatHistoryResponse, ChatRequest
from meetrag.api.sse import sse_frames
from meetrag.chat import ChatOrchestrator
from meetrag.services import Services

router = APIRouter()

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.post("/sessions/{session_id}/chat", summary="Ask a question, answer streamed as SSE")
async def chat(
    session_id: str,
    request: ChatRequest,
    orchestrator: ChatOrchestrator = Depends(get_chat),
) -> StreamingResponse:
    events = await orchestrator.ask(session_id, request.question)
    return StreamingResponse(sse_frames(events), media_type="text/event-stream", headers=_SSE_HEADERS)


@router.get("/sessions/{session_id}/chats", response_model=ChatHistoryResponse)
async def chat_history(
    session_id: str,
    limit: int = Query(5, ge=1, le=100),
    before: str | None = Query(None, description="Only turns older than this turn id"),
    services: Services = Depends(get_services),
) -> ChatHistoryResponse:
    await services.sessions.get_status(session_id)
    turns = await services.store.list_chat_turns(session_id, limit=limit, before=before)
    return ChatHistoryResponse(session_id=session_id, turns=turns)
