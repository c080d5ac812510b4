"""Unit tests for the Groq refinement provider."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import FAST_RETRY
from meetrag.core.exceptions import ProviderError


def _completion(content: str | None):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def refiner():
    pytest.importorskip("groq")
    from meetrag.refine import GroqRefiner

    refiner = GroqRefiner(api_key="test-key", max_chunk_chars=40, retry_config=FAST_RETRY)
    refiner.client = MagicMock()
    refiner.client.chat.completions.create = AsyncMock()
    return refiner


class TestGroqRefiner:
    def test_default_model(self, refiner) -> None:
        assert refiner.model == "qwen/qwen3-32b"

    async def test_refine_parses_chunks(self, refiner) -> None:
        payload = [
            {"summary": "Release timing.", "refined_text": "- The release moves to May."},
            {"summary": "Owners.", "refined_text": "- Dana writes the notes."},
        ]
        refiner.client.chat.completions.create.return_value = _completion(
            "<think>reasoning</think>" + json.dumps(payload)
        )

        chunks = await refiner.refine("um so the release uh moves to may and dana writes the notes")

        assert [(c.summary, c.text) for c in chunks] == [
            ("Release timing.", "- The release moves to May."),
            ("Owners.", "- Dana writes the notes."),
        ]

    async def test_long_chunks_are_bounded(self, refiner) -> None:
        text = "- First long line about budgets.\n- Second long line about hiring."
        refiner.client.chat.completions.create.return_value = _completion(
            json.dumps([{"summary": "Mixed.", "refined_text": text}])
        )

        chunks = await refiner.refine("raw")

        assert len(chunks) == 2
        assert all(len(c.text) <= 40 for c in chunks)
        assert all(c.summary == "Mixed." for c in chunks)

    @pytest.mark.parametrize("content", [None, "no json at all", "[]"])
    async def test_unusable_response(self, refiner, content) -> None:
        refiner.client.chat.completions.create.return_value = _completion(content)

        with pytest.raises(ProviderError) as exc_info:
            await refiner.refine("raw text")
        assert exc_info.value.provider == "groq_refinement"
