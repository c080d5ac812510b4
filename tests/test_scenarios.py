"""End-to-end scenarios across sessions, ingestion, workers and chat."""

import asyncio
from collections.abc import AsyncGenerator

import pytest

from conftest import FakeEmbedder, FakeGenerator, FakeProbe, FakeTranscriber, InMemoryIndex, RecordingBlobStore
from meetrag.chat import APOLOGY, EndOfStream, Fragment
from meetrag.core.config import MeetRAGConfig
from meetrag.core.exceptions import ChunkValidationError
from meetrag.core.models import DeclaredMetadata, JobOutcome, SessionStatus, SourceKind
from meetrag.refine.passthrough import PassthroughRefiner
from meetrag.services import Services

MEETING_TEXT = (
    "We reviewed the quarterly roadmap. The mobile release slips by two weeks. "
    "Dana will draft the customer announcement."
)
WEBM = DeclaredMetadata(original_name="meeting.webm", mime_type="audio/webm")


@pytest.fixture
def scenario_probe() -> FakeProbe:
    return FakeProbe(duration_seconds=10 * 60)


@pytest.fixture
def scenario_index() -> InMemoryIndex:
    return InMemoryIndex()


@pytest.fixture
def scenario_generator() -> FakeGenerator:
    return FakeGenerator(["The roadmap ", "and the mobile release were discussed."])


@pytest.fixture
async def services(
    config: MeetRAGConfig,
    scenario_probe: FakeProbe,
    scenario_index: InMemoryIndex,
    scenario_generator: FakeGenerator,
) -> AsyncGenerator[Services, None]:
    config.max_chunk_bytes = 25 * 1024 * 1024
    async with Services(
        config,
        blob_store=RecordingBlobStore(config.blob_dir),
        probe=scenario_probe,
        stt=FakeTranscriber(text=MEETING_TEXT),
        refiner=PassthroughRefiner(max_chunk_chars=80),
        embedder=FakeEmbedder(),
        index=scenario_index,
        generator=scenario_generator,
    ) as svc:
        yield svc


async def _collect(services: Services, session_id: str, question: str) -> list:
    return [event async for event in await services.chat.ask(session_id, question)]


class TestScenarios:
    async def test_scenario_a_live_session_end_to_end(self, services: Services, scenario_index: InMemoryIndex) -> None:
        session = await services.sessions.start_session()
        audio = b"\x1a\x45\xdf\xa3" + b"\0" * (20 * 1000 * 1000)

        await services.gateway.submit_chunk(session.session_id, audio, WEBM)
        worker = await services.open_worker()
        assert await worker.run_once() is JobOutcome.PROCESSED

        assert len(await services.store.get_transcript(session.session_id)) > 0
        assert scenario_index.of_kind(session.session_id, SourceKind.TRANSCRIPT)

        await services.sessions.stop_session(session.session_id)
        final = await services.sessions.get_transcript(session.session_id)
        assert final.status is SessionStatus.COMPLETED
        assert final.transcript == [MEETING_TEXT]

    async def test_scenario_b_over_long_chunk_never_published(
        self, services: Services, scenario_probe: FakeProbe
    ) -> None:
        session = await services.sessions.start_session()
        scenario_probe.result.duration_seconds = 16 * 60

        with pytest.raises(ChunkValidationError) as exc_info:
            await services.gateway.submit_chunk(session.session_id, b"audio", WEBM)

        assert exc_info.value.reason == "too_long"
        assert await services.queue.pending_count() == 0

    async def test_scenario_c_chat_over_indexed_transcript(self, services: Services) -> None:
        session = await services.sessions.start_session()
        await services.gateway.submit_chunk(session.session_id, b"audio", WEBM)
        worker = await services.open_worker()
        await worker.run_once()

        events = await _collect(services, session.session_id, "What was discussed?")

        assert any(isinstance(event, Fragment) for event in events)
        assert events[-1] == EndOfStream()
        turns = await services.store.list_chat_turns(session.session_id)
        assert turns[-1].answer_text is not None

    async def test_scenario_d_empty_generation_yields_single_apology(
        self, services: Services, scenario_generator: FakeGenerator
    ) -> None:
        scenario_generator.scripts = [[""]]
        session = await services.sessions.start_session()

        events = await _collect(services, session.session_id, "What was discussed?")

        assert events == [Fragment(APOLOGY), EndOfStream()]
        assert len(scenario_generator.prompts) == services.config.generation_max_attempts

    async def test_scenario_e_concurrent_sessions_get_disjoint_context(
        self, services: Services, scenario_generator: FakeGenerator
    ) -> None:
        first = await services.sessions.start_session()
        second = await services.sessions.start_session()
        worker = await services.open_worker()
        for session in (first, second):
            await services.gateway.submit_chunk(session.session_id, b"audio", WEBM)
            await worker.run_once()
        own_points = {
            session.session_id: {
                point.payload.text
                for point in services.index.of_kind(session.session_id, SourceKind.TRANSCRIPT)
            }
            for session in (first, second)
        }
        seen: dict[str, list] = {}

        original_search = services.index.search

        async def recording_search(vector, *, session_id, source_kind, top_k):
            hits = await original_search(vector, session_id=session_id, source_kind=source_kind, top_k=top_k)
            seen.setdefault(session_id, []).extend(hits)
            return hits

        services.index.search = recording_search
        await asyncio.gather(
            _collect(services, first.session_id, "What was discussed?"),
            _collect(services, second.session_id, "What was discussed?"),
        )

        first_ids = {hit.id for hit in seen[first.session_id]}
        second_ids = {hit.id for hit in seen[second.session_id]}
        assert first_ids and second_ids
        assert first_ids.isdisjoint(second_ids)
        for session_id, hits in seen.items():
            assert all(hit.payload.session_id == session_id for hit in hits)
            assert {hit.payload.text for hit in hits if hit.payload.source_kind is SourceKind.TRANSCRIPT} <= own_points[
                session_id
            ]


class TestProperties:
    async def test_stop_blocks_in_flight_jobs(self, services: Services) -> None:
        session = await services.sessions.start_session()
        for _ in range(3):
            await services.gateway.submit_chunk(session.session_id, b"audio", WEBM)
        worker = await services.open_worker()
        assert await worker.run_once() is JobOutcome.PROCESSED

        await services.sessions.stop_session(session.session_id)

        assert await worker.run_once() is JobOutcome.DISCARDED
        assert await worker.run_once() is JobOutcome.DISCARDED
        assert await services.store.get_transcript(session.session_id) == [MEETING_TEXT]

    async def test_every_job_deletes_its_blob_once(self, services: Services) -> None:
        session = await services.sessions.start_session()
        refs = [
            (await services.gateway.submit_chunk(session.session_id, b"audio", WEBM)).blob_ref
            for _ in range(3)
        ]
        worker = await services.open_worker()
        assert await worker.run_once() is JobOutcome.PROCESSED
        services.stt.error = RuntimeError("stt down")
        assert await worker.run_once() is JobOutcome.FAILED
        await services.sessions.stop_session(session.session_id)
        assert await worker.run_once() is JobOutcome.DISCARDED

        assert services.blob_store.deletes == {ref: 1 for ref in refs}

    async def test_stop_session_twice(self, services: Services) -> None:
        session = await services.sessions.start_session()
        first = await services.sessions.stop_session(session.session_id)
        second = await services.sessions.stop_session(session.session_id)
        assert first.status is second.status is SessionStatus.COMPLETED

    async def test_competing_workers_process_each_job_once(self, services: Services) -> None:
        session = await services.sessions.start_session()
        for _ in range(6):
            await services.gateway.submit_chunk(session.session_id, b"audio", WEBM)
        workers = [await services.open_worker(name=f"w{i}") for i in range(3)]

        async def drain(worker) -> int:
            processed = 0
            while await worker.run_once() is not None:
                processed += 1
            return processed

        counts = await asyncio.gather(*(drain(worker) for worker in workers))

        assert sum(counts) == 6
        assert len(await services.store.get_transcript(session.session_id)) == 6
