"""HTTP API tests using FastAPI's TestClient."""

import json
import time
from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from conftest import FakeEmbedder, FakeGenerator, FakeProbe, FakeTranscriber, InMemoryIndex, undecodable
from meetrag.api import create_app
from meetrag.api.sse import END_FRAME, HEARTBEAT_FRAME, encode_event
from meetrag.chat import APOLOGY, EndOfStream, Fragment, Heartbeat
from meetrag.core.config import MeetRAGConfig
from meetrag.core.exceptions import ProviderError
from meetrag.refine.passthrough import PassthroughRefiner
from meetrag.services import Services

AUDIO = ("chunk.webm", b"The budget review is on Monday.", "audio/webm")


def parse_sse(body: str) -> list[dict | str]:
    """Split an SSE body into decoded data payloads and comment lines."""
    events: list[dict | str] = []
    for frame in body.split("\n\n"):
        if not frame:
            continue
        if frame.startswith(":"):
            events.append(frame)
        elif frame.startswith("data: "):
            events.append(json.loads(frame[len("data: ") :]))
    return events


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator(["The review ", "is on Monday."])


@pytest.fixture
def services(config: MeetRAGConfig, probe: FakeProbe, generator: FakeGenerator) -> Services:
    config.max_chunk_bytes = 4096
    config.allowed_audio_formats = ["webm", "matroska"]
    config.embedded_workers = 1
    return Services(
        config,
        probe=probe,
        stt=FakeTranscriber(),
        refiner=PassthroughRefiner(max_chunk_chars=200),
        embedder=FakeEmbedder(),
        index=InMemoryIndex(),
        generator=generator,
    )


@pytest.fixture
def client(services: Services) -> Iterator[TestClient]:
    with TestClient(create_app(services=services)) as test_client:
        yield test_client


def _start(client: TestClient) -> str:
    response = client.post("/api/sessions")
    assert response.status_code == 201
    return response.json()["session_id"]


def _wait_for_transcript(client: TestClient, session_id: str, count: int) -> list[str]:
    deadline = time.monotonic() + 5
    while time.monotonic() < deadline:
        chunks = client.get(f"/api/sessions/{session_id}/transcript").json()["chunks"]
        if len(chunks) >= count:
            return chunks
        time.sleep(0.02)
    raise AssertionError(f"transcript for {session_id} never reached {count} chunks")


# ============================================================================
# SSE encoding
# ============================================================================


class TestSSEEncoding:
    def test_fragment_frame(self) -> None:
        assert encode_event(Fragment('say "hi"')) == 'data: {"text": "say \\"hi\\""}\n\n'

    def test_heartbeat_is_comment(self) -> None:
        assert encode_event(Heartbeat()) == HEARTBEAT_FRAME
        assert HEARTBEAT_FRAME.startswith(":")

    def test_end_frame(self) -> None:
        assert encode_event(EndOfStream()) == END_FRAME


# ============================================================================
# Sessions
# ============================================================================


class TestSessionRoutes:
    def test_health(self, client: TestClient) -> None:
        assert client.get("/health").json() == {"ok": True}

    def test_start_and_get_session(self, client: TestClient) -> None:
        session_id = _start(client)

        body = client.get(f"/api/sessions/{session_id}").json()

        assert body["status"] == "active"
        assert body["completed_at"] is None

    def test_stop_session_is_idempotent(self, client: TestClient) -> None:
        session_id = _start(client)

        first = client.post(f"/api/sessions/{session_id}/stop")
        second = client.post(f"/api/sessions/{session_id}/stop")

        assert first.status_code == second.status_code == 200
        assert second.json()["status"] == "completed"
        assert second.json()["completed_at"] == first.json()["completed_at"]

    def test_unknown_session_is_404(self, client: TestClient) -> None:
        response = client.get("/api/sessions/does-not-exist")
        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"
        assert client.post("/api/sessions/does-not-exist/stop").status_code == 404


# ============================================================================
# Audio upload
# ============================================================================


class TestAudioUpload:
    def test_upload_is_transcribed(self, client: TestClient) -> None:
        session_id = _start(client)

        response = client.post(f"/api/sessions/{session_id}/audio", files={"audio": AUDIO})

        assert response.status_code == 202
        assert response.json()["status"] == "queued"
        assert _wait_for_transcript(client, session_id, 1) == ["The budget review is on Monday."]

    def test_upload_to_completed_session_is_409(self, client: TestClient) -> None:
        session_id = _start(client)
        client.post(f"/api/sessions/{session_id}/stop")

        response = client.post(f"/api/sessions/{session_id}/audio", files={"audio": AUDIO})

        assert response.status_code == 409

    def test_upload_to_unknown_session_is_404(self, client: TestClient) -> None:
        response = client.post("/api/sessions/nope/audio", files={"audio": AUDIO})
        assert response.status_code == 404

    def test_too_large_is_413(self, client: TestClient) -> None:
        session_id = _start(client)
        big = ("big.webm", b"x" * 5000, "audio/webm")

        response = client.post(f"/api/sessions/{session_id}/audio", files={"audio": big})

        assert response.status_code == 413
        assert response.json()["reason"] == "too_large"

    def test_too_long_is_422(self, client: TestClient, probe: FakeProbe) -> None:
        session_id = _start(client)
        probe.result.duration_seconds = 16 * 60

        response = client.post(f"/api/sessions/{session_id}/audio", files={"audio": AUDIO})

        assert response.status_code == 422
        assert response.json()["reason"] == "too_long"

    def test_unsupported_format_is_415(self, client: TestClient, probe: FakeProbe) -> None:
        session_id = _start(client)
        probe.result.format_names = ["avi"]

        response = client.post(f"/api/sessions/{session_id}/audio", files={"audio": AUDIO})

        assert response.status_code == 415

    def test_undecodable_is_422(self, client: TestClient, probe: FakeProbe) -> None:
        session_id = _start(client)
        probe.error = undecodable()

        response = client.post(f"/api/sessions/{session_id}/audio", files={"audio": AUDIO})

        assert response.status_code == 422
        assert response.json()["reason"] == "undecodable"

    def test_missing_file_field_is_422(self, client: TestClient) -> None:
        session_id = _start(client)
        assert client.post(f"/api/sessions/{session_id}/audio").status_code == 422


# ============================================================================
# Chat
# ============================================================================


class TestChatRoutes:
    def test_chat_streams_sse(self, client: TestClient) -> None:
        session_id = _start(client)

        response = client.post(f"/api/sessions/{session_id}/chat", json={"question": "When is the review?"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = parse_sse(response.text)
        assert events == [
            {"text": "The review "},
            {"text": "is on Monday."},
            {"event": "stream_end"},
        ]

    def test_chat_unknown_session_is_404(self, client: TestClient) -> None:
        response = client.post("/api/sessions/nope/chat", json={"question": "Q?"})
        assert response.status_code == 404

    def test_chat_empty_question_rejected(self, client: TestClient) -> None:
        session_id = _start(client)
        response = client.post(f"/api/sessions/{session_id}/chat", json={"question": ""})
        assert response.status_code == 422

    def test_generation_error_becomes_apology(self, client: TestClient, generator: FakeGenerator) -> None:
        generator.scripts = [[ProviderError("quota", provider="gemini_generation")]]
        session_id = _start(client)

        response = client.post(f"/api/sessions/{session_id}/chat", json={"question": "Q?"})

        assert response.status_code == 200
        assert parse_sse(response.text) == [{"text": APOLOGY}, {"event": "stream_end"}]

    def test_chat_history(self, client: TestClient) -> None:
        session_id = _start(client)
        client.post(f"/api/sessions/{session_id}/chat", json={"question": "When is the review?"})

        body = client.get(f"/api/sessions/{session_id}/chats").json()

        assert len(body["turns"]) == 1
        assert body["turns"][0]["question_text"] == "When is the review?"
        assert body["turns"][0]["answer_text"] == "The review is on Monday."

    def test_chat_history_unknown_session_is_404(self, client: TestClient) -> None:
        assert client.get("/api/sessions/nope/chats").status_code == 404
