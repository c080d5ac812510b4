"""Document persistence for sessions, transcripts and chat turns (async SQLite)."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from meetrag.core.exceptions import PersistenceError
from meetrag.core.logging_config import get_logger
from meetrag.core.models import ChatTurn, Session, SessionStatus

logger = get_logger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS sessions (
        session_id TEXT PRIMARY KEY,
        status TEXT NOT NULL,
        created_at TEXT NOT NULL,
        completed_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS transcript_chunks (
        session_id TEXT NOT NULL,
        seq INTEGER NOT NULL,
        text TEXT NOT NULL,
        created_at TEXT NOT NULL,
        PRIMARY KEY (session_id, seq),
        FOREIGN KEY (session_id) REFERENCES sessions(session_id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS chat_turns (
        turn_id TEXT PRIMARY KEY,
        session_id TEXT NOT NULL,
        question_text TEXT NOT NULL,
        answer_text TEXT,
        created_at TEXT NOT NULL,
        answered_at TEXT,
        FOREIGN KEY (session_id) REFERENCES sessions(session_id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_chat_turns_session_id ON chat_turns(session_id)",
)


class DocumentStore:
    """Persists sessions and chat turns using SQLite.

    The connection runs in autocommit mode: every mutation is a single
    statement, so each one is atomic on its own and conditional updates
    (append only while active, answer only once) cannot race.
    """

    def __init__(self, db_path: str | Path):
        """Initialize DocumentStore with database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open the connection with WAL mode and create the schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._db = await aiosqlite.connect(str(self.db_path), isolation_level=None)
            await self._db.execute("PRAGMA foreign_keys = ON")
            await self._db.execute("PRAGMA journal_mode=WAL")
            await self._db.execute("PRAGMA busy_timeout = 5000")
            for statement in _SCHEMA:
                await self._db.execute(statement)
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to initialize document store: {e}") from e

    def _conn(self) -> aiosqlite.Connection:
        if not self._db:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._db

    def _now_iso8601(self) -> str:
        return datetime.now(UTC).isoformat()

    async def _execute(self, operation: str, sql: str, params: Iterable[Any] = ()) -> int:
        """Run a single mutating statement and return the affected row count."""
        db = self._conn()
        try:
            cursor = await db.execute(sql, tuple(params))
            rowcount = cursor.rowcount
            await cursor.close()
        except aiosqlite.Error as e:
            logger.error("persistence_failed", operation=operation, error=str(e))
            raise PersistenceError(f"Failed to {operation}: {e}") from e
        return rowcount

    async def _fetchall(self, operation: str, sql: str, params: Iterable[Any] = ()) -> list[Any]:
        db = self._conn()
        try:
            async with db.execute(sql, tuple(params)) as cursor:
                return list(await cursor.fetchall())
        except aiosqlite.Error as e:
            logger.error("persistence_failed", operation=operation, error=str(e))
            raise PersistenceError(f"Failed to {operation}: {e}") from e

    # -- Sessions --

    async def create_session(self, session_id: str) -> Session:
        """Insert a new active session in one statement.

        Raises:
            PersistenceError: If the insert fails (including id collisions).
        """
        now = self._now_iso8601()
        await self._execute(
            "create session",
            "INSERT INTO sessions (session_id, status, created_at) VALUES (?, ?, ?)",
            (session_id, SessionStatus.ACTIVE.value, now),
        )
        return Session(
            session_id=session_id,
            created_at=datetime.fromisoformat(now),
            status=SessionStatus.ACTIVE,
        )

    async def get_session(self, session_id: str, *, with_transcript: bool = False) -> Session | None:
        """Get a session, optionally with its transcript chunks in append order.

        Returns:
            The session or None if it does not exist
        """
        rows = await self._fetchall(
            "read session",
            "SELECT session_id, status, created_at, completed_at FROM sessions WHERE session_id = ?",
            (session_id,),
        )
        if not rows:
            return None
        row = rows[0]
        transcript: list[str] = []
        if with_transcript:
            transcript = await self.get_transcript(session_id)
        return Session(
            session_id=row[0],
            status=SessionStatus(row[1]),
            created_at=datetime.fromisoformat(row[2]),
            completed_at=datetime.fromisoformat(row[3]) if row[3] else None,
            transcript=transcript,
        )

    async def get_session_status(self, session_id: str) -> SessionStatus | None:
        rows = await self._fetchall(
            "read session status",
            "SELECT status FROM sessions WHERE session_id = ?",
            (session_id,),
        )
        return SessionStatus(rows[0][0]) if rows else None

    async def complete_session(self, session_id: str) -> bool:
        """Mark an active session completed.

        Returns:
            True if this call performed the transition, False if the session
            was already completed or does not exist
        """
        changed = await self._execute(
            "complete session",
            "UPDATE sessions SET status = ?, completed_at = ? WHERE session_id = ? AND status = ?",
            (
                SessionStatus.COMPLETED.value,
                self._now_iso8601(),
                session_id,
                SessionStatus.ACTIVE.value,
            ),
        )
        return changed > 0

    async def append_transcript_chunk(self, session_id: str, text: str) -> bool:
        """Append a transcript chunk only if the session is active right now.

        The status check and the insert are one statement, so a concurrent
        stop either lands before (append refused) or after (append kept).

        Returns:
            True if the chunk was appended, False if the session is not active
        """
        inserted = await self._execute(
            "append transcript chunk",
            """
            INSERT INTO transcript_chunks (session_id, seq, text, created_at)
            SELECT s.session_id,
                   COALESCE(
                       (SELECT MAX(seq) FROM transcript_chunks WHERE session_id = s.session_id),
                       -1
                   ) + 1,
                   ?,
                   ?
            FROM sessions AS s
            WHERE s.session_id = ? AND s.status = ?
            """,
            (text, self._now_iso8601(), session_id, SessionStatus.ACTIVE.value),
        )
        return inserted > 0

    async def get_transcript(self, session_id: str) -> list[str]:
        rows = await self._fetchall(
            "read transcript",
            "SELECT text FROM transcript_chunks WHERE session_id = ? ORDER BY seq",
            (session_id,),
        )
        return [row[0] for row in rows]

    # -- Chat turns --

    async def create_chat_turn(self, turn_id: str, session_id: str, question_text: str) -> ChatTurn:
        now = self._now_iso8601()
        await self._execute(
            "create chat turn",
            "INSERT INTO chat_turns (turn_id, session_id, question_text, created_at) "
            "VALUES (?, ?, ?, ?)",
            (turn_id, session_id, question_text, now),
        )
        return ChatTurn(
            turn_id=turn_id,
            session_id=session_id,
            question_text=question_text,
            created_at=datetime.fromisoformat(now),
        )

    async def set_chat_answer(self, turn_id: str, answer_text: str) -> bool:
        """Record the answer for a turn exactly once.

        Returns:
            True if the answer was written, False if it was already set or
            the turn does not exist
        """
        updated = await self._execute(
            "set chat answer",
            "UPDATE chat_turns SET answer_text = ?, answered_at = ? "
            "WHERE turn_id = ? AND answer_text IS NULL",
            (answer_text, self._now_iso8601(), turn_id),
        )
        return updated > 0

    async def get_chat_turn(self, turn_id: str) -> ChatTurn | None:
        rows = await self._fetchall(
            "read chat turn",
            "SELECT turn_id, session_id, question_text, answer_text, created_at, answered_at "
            "FROM chat_turns WHERE turn_id = ?",
            (turn_id,),
        )
        return self._row_to_turn(rows[0]) if rows else None

    async def list_chat_turns(
        self,
        session_id: str,
        limit: int = 5,
        before: str | None = None,
    ) -> list[ChatTurn]:
        """List the most recent chat turns of a session, oldest first.

        Args:
            session_id: Session to read
            limit: Maximum number of turns to return
            before: Only return turns created before this turn id

        Returns:
            Up to ``limit`` turns in chronological order
        """
        sql = (
            "SELECT turn_id, session_id, question_text, answer_text, created_at, answered_at "
            "FROM chat_turns WHERE session_id = ?"
        )
        params: list[Any] = [session_id]
        if before is not None:
            sql += " AND rowid < (SELECT rowid FROM chat_turns WHERE turn_id = ?)"
            params.append(before)
        sql += " ORDER BY rowid DESC LIMIT ?"
        params.append(limit)

        rows = await self._fetchall("list chat turns", sql, params)
        return [self._row_to_turn(row) for row in reversed(rows)]

    @staticmethod
    def _row_to_turn(row: Any) -> ChatTurn:
        return ChatTurn(
            turn_id=row[0],
            session_id=row[1],
            question_text=row[2],
            answer_text=row[3],
            created_at=datetime.fromisoformat(row[4]),
            answered_at=datetime.fromisoformat(row[5]) if row[5] else None,
        )

    async def close(self) -> None:
        """Close database connection."""
        if self._db:
            await self._db.close()
            self._db = None

    async def __aenter__(self) -> DocumentStore:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
