"""Tests for the queued job wire format."""

import json

import pytest

from meetrag.core.exceptions import MessageDecodeError
from meetrag.core.models import JobMetadata, TranscribeChunk
from meetrag.queue.messages import decode_message, encode_message


@pytest.fixture
def job() -> TranscribeChunk:
    return TranscribeChunk(
        session_id="s1",
        blob_ref="s1/abc.webm",
        metadata=JobMetadata(
            original_name="chunk.webm",
            mime_type="audio/webm",
            duration_seconds=12.5,
            size_bytes=2048,
            format_names=["matroska", "webm"],
        ),
    )


class TestEncodeMessage:
    def test_encoded_message_is_tagged(self, job: TranscribeChunk) -> None:
        raw = json.loads(encode_message(job))
        assert raw["kind"] == "transcribe_chunk"
        assert raw["session_id"] == "s1"
        assert raw["metadata"]["size_bytes"] == 2048

    def test_decode_restores_message(self, job: TranscribeChunk) -> None:
        assert decode_message(encode_message(job)) == job

    def test_decode_accepts_bytes(self, job: TranscribeChunk) -> None:
        assert decode_message(encode_message(job).encode()) == job


class TestDecodeMessageErrors:
    def test_not_json(self) -> None:
        with pytest.raises(MessageDecodeError, match="not valid JSON"):
            decode_message("{nope")

    def test_not_an_object(self) -> None:
        with pytest.raises(MessageDecodeError, match="JSON object"):
            decode_message("[1, 2]")

    @pytest.mark.parametrize("kind", [None, "summarize", 7])
    def test_unknown_kind(self, kind) -> None:
        with pytest.raises(MessageDecodeError, match="Unknown message kind"):
            decode_message(json.dumps({"kind": kind, "session_id": "s1"}))

    def test_missing_fields(self) -> None:
        with pytest.raises(MessageDecodeError) as exc_info:
            decode_message(json.dumps({"kind": "transcribe_chunk", "session_id": "s1"}))
        assert exc_info.value.body is not None
