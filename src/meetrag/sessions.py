"""Session lifecycle: start, stop, and read back a live session."""

from __future__ import annotations

import uuid

from meetrag.core.exceptions import NotFoundError
from meetrag.core.logging_config import get_logger
from meetrag.core.models import Session, SessionStatus
from meetrag.core.state import DocumentStore

logger = get_logger(__name__)


class SessionManager:
    """Creates and completes sessions in the document store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def start_session(self) -> Session:
        """Create a new active session with a fresh id.

        Raises:
            PersistenceError: If the session could not be stored. Nothing is
                left behind in that case.
        """
        session = await self._store.create_session(str(uuid.uuid4()))
        logger.info("session_started", session_id=session.session_id)
        return session

    async def stop_session(self, session_id: str) -> Session:
        """Mark a session completed. Stopping a completed session is a no-op.

        Raises:
            NotFoundError: If the session does not exist.
        """
        transitioned = await self._store.complete_session(session_id)
        session = await self._store.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found", entity_id=session_id)
        if transitioned:
            logger.info("session_completed", session_id=session_id)
        else:
            logger.debug("session_already_completed", session_id=session_id)
        return session

    async def get_status(self, session_id: str) -> SessionStatus:
        status = await self._store.get_session_status(session_id)
        if status is None:
            raise NotFoundError(f"Session {session_id} not found", entity_id=session_id)
        return status

    async def get_session(self, session_id: str) -> Session:
        session = await self._store.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found", entity_id=session_id)
        return session

    async def get_transcript(self, session_id: str) -> Session:
        """Session with its transcript chunks in append order."""
        session = await self._store.get_session(session_id, with_transcript=True)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found", entity_id=session_id)
        return session
