"""Tests for SessionManager."""

import pytest

from meetrag.core.exceptions import NotFoundError
from meetrag.core.models import SessionStatus
from meetrag.core.state import DocumentStore
from meetrag.sessions import SessionManager


@pytest.fixture
def sessions(store: DocumentStore) -> SessionManager:
    return SessionManager(store)


class TestSessionManager:
    async def test_start_session_creates_active_session(self, sessions: SessionManager) -> None:
        session = await sessions.start_session()

        assert session.status is SessionStatus.ACTIVE
        assert await sessions.get_status(session.session_id) is SessionStatus.ACTIVE

    async def test_session_ids_are_unique(self, sessions: SessionManager) -> None:
        ids = {(await sessions.start_session()).session_id for _ in range(5)}
        assert len(ids) == 5

    async def test_stop_session_completes(self, sessions: SessionManager) -> None:
        session = await sessions.start_session()

        stopped = await sessions.stop_session(session.session_id)

        assert stopped.status is SessionStatus.COMPLETED
        assert stopped.completed_at is not None

    async def test_stop_is_idempotent(self, sessions: SessionManager) -> None:
        session = await sessions.start_session()
        first = await sessions.stop_session(session.session_id)
        second = await sessions.stop_session(session.session_id)

        assert second.status is SessionStatus.COMPLETED
        assert second.completed_at == first.completed_at

    async def test_stop_unknown_session_raises(self, sessions: SessionManager) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await sessions.stop_session("missing")
        assert exc_info.value.entity_id == "missing"

    async def test_get_status_unknown_session_raises(self, sessions: SessionManager) -> None:
        with pytest.raises(NotFoundError):
            await sessions.get_status("missing")

    async def test_get_transcript(self, sessions: SessionManager, store: DocumentStore) -> None:
        session = await sessions.start_session()
        await store.append_transcript_chunk(session.session_id, "hello there")

        with_transcript = await sessions.get_transcript(session.session_id)

        assert with_transcript.transcript == ["hello there"]
