"""Retrieval-augmented streaming chat over a session's transcript.

A question is embedded once and used to search the session's transcript
points and earlier chat turns. The answer is streamed as it is generated,
interleaved with heartbeats while the model is silent. Once the answer is
complete it is saved and indexed so later questions can retrieve it.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeAlias

from meetrag.core.exceptions import GenerationEmptyError, NotFoundError
from meetrag.core.logging_config import get_logger
from meetrag.core.models import ChatTurn, SearchHit, SourceKind, VectorPayload, VectorPoint

if TYPE_CHECKING:
    import structlog

    from meetrag.core.protocols import EmbeddingProvider, GenerationProvider, RetrievalIndex
    from meetrag.core.state import DocumentStore

logger = get_logger(__name__)

SYSTEM_PROMPT = """\
You are a helpful assistant for a meeting management application. Your goal \
is to answer the user's question using the meeting transcription and the \
chat history you are given.

Instructions:
- Answer concisely and accurately.
- Use only the provided context to form your answer.
- Do not make up information. If the answer cannot be found in the context, \
say so clearly and politely.
- Maintain a helpful and professional tone.
- Do not mention that you are an AI or refer to the provided context."""

NO_TRANSCRIPT_CONTEXT = "No relevant meeting transcriptions were found for this query."
NO_CHAT_CONTEXT = "No relevant chat history was found for this query."
APOLOGY = (
    "I apologize, but an error occurred while processing your request. Please try again later."
)


@dataclass(frozen=True)
class Fragment:
    """A piece of answer text, forwarded as soon as it is generated."""

    text: str


@dataclass(frozen=True)
class Heartbeat:
    """Keep-alive emitted after a stretch of silence."""


@dataclass(frozen=True)
class EndOfStream:
    """Last event of every chat stream."""


ChatEvent: TypeAlias = Fragment | Heartbeat | EndOfStream


def chat_pair_text(question: str, answer: str) -> str:
    return f"User: {question}\nAI response: {answer}"


def build_prompt(question: str, transcript_hits: list[SearchHit], chat_hits: list[SearchHit]) -> str:
    """Assemble the user prompt from retrieved context and the question."""
    if transcript_hits:
        transcript_text = "\n".join(
            f'Transcription Snippet: "{hit.payload.text}"' for hit in transcript_hits
        )
    else:
        transcript_text = NO_TRANSCRIPT_CONTEXT

    chat_text = "\n".join(hit.payload.text for hit in chat_hits) if chat_hits else NO_CHAT_CONTEXT

    return (
        "Meeting Transcription Context:\n"
        f"{transcript_text}\n\n"
        "Relevant Chat History:\n"
        f"{chat_text}\n\n"
        "User's Question:\n"
        f"{question}"
    )


_QueueItem: TypeAlias = Fragment | EndOfStream


class ChatOrchestrator:
    """Answers questions about a session as a stream of ChatEvents."""

    def __init__(
        self,
        *,
        store: DocumentStore,
        embedder: EmbeddingProvider,
        index: RetrievalIndex,
        generator: GenerationProvider,
        transcript_top_k: int = 5,
        chat_top_k: int = 3,
        heartbeat_interval_seconds: float = 15.0,
        generation_max_attempts: int = 2,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._index = index
        self._generator = generator
        self._transcript_top_k = transcript_top_k
        self._chat_top_k = chat_top_k
        self._heartbeat_interval = heartbeat_interval_seconds
        self._max_attempts = generation_max_attempts
        self._background: set[asyncio.Task[None]] = set()

    async def ask(self, session_id: str, question: str) -> AsyncIterator[ChatEvent]:
        """Start answering ``question`` for a session.

        The session is checked before anything is streamed, so callers can
        report an unknown session as an ordinary error.

        Returns:
            Async iterator of events. It always finishes with EndOfStream,
            preceded by an apology fragment if answering failed.

        Raises:
            NotFoundError: If the session does not exist.
        """
        if await self._store.get_session_status(session_id) is None:
            raise NotFoundError(f"Session {session_id} not found", entity_id=session_id)
        return self._stream(session_id, question)

    async def _stream(self, session_id: str, question: str) -> AsyncIterator[ChatEvent]:
        out: asyncio.Queue[_QueueItem] = asyncio.Queue()
        producer = asyncio.create_task(self._produce(session_id, question, out))
        try:
            while True:
                try:
                    item = await asyncio.wait_for(out.get(), timeout=self._heartbeat_interval)
                except TimeoutError:
                    yield Heartbeat()
                    continue
                yield item
                if isinstance(item, EndOfStream):
                    return
        finally:
            # Consumer went away (or finished); nothing more may be emitted.
            if not producer.done():
                producer.cancel()
                logger.info("chat_stream_abandoned", session_id=session_id)

    async def _produce(self, session_id: str, question: str, out: asyncio.Queue[_QueueItem]) -> None:
        log = logger.bind(session_id=session_id, question_length=len(question))
        try:
            transcript_hits, chat_hits = await self._retrieve(session_id, question, log)
            prompt = build_prompt(question, transcript_hits, chat_hits)

            turn = await self._store.create_chat_turn(str(uuid.uuid4()), session_id, question)
            log = log.bind(turn_id=turn.turn_id)

            answer = await self._generate(prompt, out, log)

            persist = asyncio.create_task(self._persist_answer(turn, answer, log))
            self._background.add(persist)
            persist.add_done_callback(self._forget)
            await asyncio.shield(persist)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.error("chat_failed", error=str(e), error_type=type(e).__name__)
            await out.put(Fragment(APOLOGY))
        else:
            log.info("chat_completed", answer_length=len(answer))
        await out.put(EndOfStream())

    async def _retrieve(
        self,
        session_id: str,
        question: str,
        log: structlog.stdlib.BoundLogger,
    ) -> tuple[list[SearchHit], list[SearchHit]]:
        vectors = await self._embedder.embed([question])
        if not vectors:
            raise ValueError("Embedding provider returned no vector for the question")
        vector = vectors[0]

        transcript_hits, chat_hits = await asyncio.gather(
            self._index.search(
                vector,
                session_id=session_id,
                source_kind=SourceKind.TRANSCRIPT,
                top_k=self._transcript_top_k,
            ),
            self._index.search(
                vector,
                session_id=session_id,
                source_kind=SourceKind.CHAT,
                top_k=self._chat_top_k,
            ),
        )
        transcript_hits = self._own_hits(session_id, transcript_hits, log)
        chat_hits = self._own_hits(session_id, chat_hits, log)
        log.debug(
            "context_retrieved",
            transcript_hits=len(transcript_hits),
            chat_hits=len(chat_hits),
        )
        return transcript_hits, chat_hits

    @staticmethod
    def _own_hits(
        session_id: str,
        hits: list[SearchHit],
        log: structlog.stdlib.BoundLogger,
    ) -> list[SearchHit]:
        own = [hit for hit in hits if hit.payload.session_id == session_id]
        if len(own) != len(hits):
            log.warning("foreign_hits_dropped", dropped=len(hits) - len(own))
        return own

    async def _generate(
        self,
        prompt: str,
        out: asyncio.Queue[_QueueItem],
        log: structlog.stdlib.BoundLogger,
    ) -> str:
        """Stream one complete answer into ``out``, retrying empty answers.

        Raises:
            GenerationEmptyError: If every attempt produced no text.
        """
        for attempt in range(1, self._max_attempts + 1):
            parts: list[str] = []
            started = False
            async with aclosing(self._generator.stream(prompt, system_prompt=SYSTEM_PROMPT)) as stream:
                async for text in stream:
                    if not text:
                        continue
                    parts.append(text)
                    if started:
                        await out.put(Fragment(text))
                    elif text.strip():
                        # Leading whitespace is held back until real text arrives.
                        started = True
                        for held in parts:
                            await out.put(Fragment(held))
            answer = "".join(parts)
            if answer.strip():
                return answer
            log.warning("generation_empty", attempt=attempt, max_attempts=self._max_attempts)
        raise GenerationEmptyError(self._max_attempts)

    async def _persist_answer(
        self,
        turn: ChatTurn,
        answer: str,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        """Save the answer and index the question/answer pair."""
        written = await self._store.set_chat_answer(turn.turn_id, answer)
        if not written:
            log.warning("chat_answer_already_set")
            return
        text = chat_pair_text(turn.question_text, answer)
        vectors = await self._embedder.embed([text])
        await self._index.upsert(
            [
                VectorPoint(
                    vector=vectors[0],
                    payload=VectorPayload(
                        session_id=turn.session_id,
                        source_kind=SourceKind.CHAT,
                        text=text,
                        turn_id=turn.turn_id,
                    ),
                )
            ]
        )
        log.debug("chat_turn_indexed")

    def _forget(self, task: asyncio.Task[None]) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("chat_persist_failed", error=str(task.exception()))

    async def drain(self) -> None:
        """Wait for persistence steps of abandoned streams to finish."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
