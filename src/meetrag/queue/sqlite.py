"""Durable job queue on top of SQLite.

A single named queue with at-most-one unacknowledged delivery per handle.
Messages survive process restarts; a delivery that is never settled becomes
visible again once the visibility timeout passes.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import aiosqlite

from meetrag.core.exceptions import TransientInfraError
from meetrag.core.logging_config import get_logger

logger = get_logger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS queue_messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        queue TEXT NOT NULL,
        body TEXT NOT NULL,
        state TEXT NOT NULL DEFAULT 'ready',
        enqueued_at TEXT NOT NULL,
        claimed_at TEXT,
        claim_token TEXT,
        delivery_count INTEGER NOT NULL DEFAULT 0
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_queue_messages_queue_state ON queue_messages(queue, state, id)",
)


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass
class SqliteDelivery:
    """A message claimed from the queue. Settle it with ack() or nack()."""

    message_id: str
    body: str
    delivery_count: int
    _queue: SqliteJobQueue = field(repr=False)
    _token: str = field(repr=False)
    settled: bool = False

    async def ack(self) -> None:
        """Remove the message permanently."""
        self._settle()
        await self._queue._finish(self, requeue=False)

    async def nack(self, requeue: bool = False) -> None:
        """Reject the message.

        Without requeue the message is dropped (no dead-letter queue is
        configured); with requeue it becomes ready for another consumer.
        """
        self._settle()
        await self._queue._finish(self, requeue=requeue)

    def _settle(self) -> None:
        if self.settled:
            raise RuntimeError(f"Delivery {self.message_id} already settled")
        self.settled = True


class SqliteJobQueue:
    """Durable named queue with prefetch fixed at one.

    Each instance is an independent consumer handle. Open it with
    ``connect()`` (or ``async with``) and close it when done.
    """

    def __init__(
        self,
        db_path: str | Path,
        *,
        queue_name: str = "audio_queue",
        poll_interval_seconds: float = 1.0,
        visibility_timeout_seconds: float = 600.0,
    ) -> None:
        self.db_path = Path(db_path)
        self.queue_name = queue_name
        self._poll_interval = poll_interval_seconds
        self._visibility_timeout = timedelta(seconds=visibility_timeout_seconds)
        self._db: aiosqlite.Connection | None = None
        self._inflight: SqliteDelivery | None = None
        self._stop_event = asyncio.Event()
        self._logger = logger.bind(queue=queue_name)

    async def connect(self) -> None:
        """Open the connection and declare the queue table.

        Raises:
            TransientInfraError: If the database cannot be opened.
        """
        if self._db is not None:
            return
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._db = await aiosqlite.connect(str(self.db_path), isolation_level=None)
            await self._db.execute("PRAGMA journal_mode=WAL")
            await self._db.execute("PRAGMA busy_timeout = 5000")
            for statement in _SCHEMA:
                await self._db.execute(statement)
        except aiosqlite.Error as e:
            raise TransientInfraError(f"Failed to open queue: {e}", component="queue") from e
        self._logger.debug("queue_connected", db_path=str(self.db_path))

    async def close(self) -> None:
        self.stop()
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def __aenter__(self) -> SqliteJobQueue:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("Queue not connected. Call connect() first.")
        return self._db

    async def publish(self, body: str) -> str:
        """Persist a message and return its id.

        Raises:
            TransientInfraError: If the message could not be written.
        """
        db = self._conn()
        try:
            cursor = await db.execute(
                "INSERT INTO queue_messages (queue, body, state, enqueued_at) VALUES (?, ?, 'ready', ?)",
                (self.queue_name, body, _now().isoformat()),
            )
            message_id = str(cursor.lastrowid)
            await cursor.close()
        except aiosqlite.Error as e:
            self._logger.warning("queue_publish_failed", error=str(e))
            raise TransientInfraError(f"Failed to publish message: {e}", component="queue") from e
        self._logger.debug("message_published", message_id=message_id)
        return message_id

    async def claim(self) -> SqliteDelivery | None:
        """Claim the oldest visible message, or return None if there is none.

        Messages claimed by a consumer that never settled them are reclaimed
        after the visibility timeout.

        Raises:
            RuntimeError: If this handle still holds an unsettled delivery.
        """
        if self._inflight is not None and not self._inflight.settled:
            raise RuntimeError("Prefetch limit reached: settle the current delivery first")

        db = self._conn()
        now = _now()
        stale_before = (now - self._visibility_timeout).isoformat()
        token = uuid.uuid4().hex
        try:
            async with db.execute(
                """
                UPDATE queue_messages
                SET state = 'inflight', claimed_at = ?, claim_token = ?,
                    delivery_count = delivery_count + 1
                WHERE id = (
                    SELECT id FROM queue_messages
                    WHERE queue = ?
                      AND (state = 'ready' OR (state = 'inflight' AND claimed_at < ?))
                    ORDER BY id
                    LIMIT 1
                )
                RETURNING id, body, delivery_count
                """,
                (now.isoformat(), token, self.queue_name, stale_before),
            ) as cursor:
                rows = list(await cursor.fetchall())
        except aiosqlite.Error as e:
            raise TransientInfraError(f"Failed to claim message: {e}", component="queue") from e

        if not rows:
            return None
        message_id, body, delivery_count = rows[0]
        delivery = SqliteDelivery(
            message_id=str(message_id),
            body=body,
            delivery_count=delivery_count,
            _queue=self,
            _token=token,
        )
        self._inflight = delivery
        return delivery

    async def _finish(self, delivery: SqliteDelivery, *, requeue: bool) -> None:
        """Delete or release a claimed message.

        Raises:
            TransientInfraError: If the database rejected the update. The
                claim then lapses after the visibility timeout.
        """
        db = self._conn()
        if requeue:
            sql = (
                "UPDATE queue_messages SET state = 'ready', claimed_at = NULL, claim_token = NULL "
                "WHERE id = ? AND claim_token = ?"
            )
        else:
            sql = "DELETE FROM queue_messages WHERE id = ? AND claim_token = ?"
        try:
            cursor = await db.execute(sql, (int(delivery.message_id), delivery._token))
            if cursor.rowcount == 0:
                # Claim expired and another consumer took the message over.
                self._logger.warning("delivery_claim_lost", message_id=delivery.message_id)
            await cursor.close()
        except aiosqlite.Error as e:
            raise TransientInfraError(
                f"Failed to settle message {delivery.message_id}: {e}", component="queue"
            ) from e
        finally:
            if self._inflight is delivery:
                self._inflight = None

    async def pending_count(self) -> int:
        """Number of messages not yet acknowledged, ready or in flight."""
        async with self._conn().execute(
            "SELECT COUNT(*) FROM queue_messages WHERE queue = ?", (self.queue_name,)
        ) as cursor:
            row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def consume(self, handler: Callable[[SqliteDelivery], Awaitable[None]]) -> None:
        """Deliver messages to ``handler`` one at a time until stop() is called.

        The handler must settle each delivery; one it leaves unsettled is
        dropped. Cancelling the loop lets the in-flight delivery finish before
        the cancellation propagates. Transient queue errors are logged and the
        loop backs off for one poll interval.
        """
        self._stop_event.clear()
        self._logger.info("consumer_started")
        while not self._stop_event.is_set():
            try:
                delivery = await self.claim()
            except TransientInfraError as e:
                self._logger.warning("queue_claim_failed", error=str(e))
                await self._idle()
                continue
            if delivery is None:
                await self._idle()
                continue
            try:
                await self._deliver(handler, delivery)
            except TransientInfraError as e:
                self._logger.warning("queue_settle_failed", message_id=delivery.message_id, error=str(e))
                await self._idle()
        self._logger.info("consumer_stopped")

    async def _deliver(
        self,
        handler: Callable[[SqliteDelivery], Awaitable[None]],
        delivery: SqliteDelivery,
    ) -> None:
        handling = asyncio.ensure_future(handler(delivery))
        try:
            await asyncio.shield(handling)
        except asyncio.CancelledError:
            self._logger.info("consumer_cancelled_mid_delivery", message_id=delivery.message_id)
            await asyncio.wait([handling])
            if not handling.cancelled() and handling.exception() is not None:
                self._logger.error("delivery_failed_during_shutdown", error=str(handling.exception()))
            raise
        finally:
            if not delivery.settled:
                self._logger.warning("delivery_left_unsettled", message_id=delivery.message_id)
                await delivery.nack(requeue=False)

    async def _idle(self) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self._poll_interval)
        except TimeoutError:
            pass

    def stop(self) -> None:
        """Ask a running consume() loop to exit after the current delivery."""
        self._stop_event.set()
