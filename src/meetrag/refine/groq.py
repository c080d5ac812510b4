"""Transcript refinement with a Groq-hosted chat model."""

from __future__ import annotations

from typing import Any

from groq import APIConnectionError, APITimeoutError, AsyncGroq, InternalServerError, RateLimitError

from meetrag.core.exceptions import ProviderError
from meetrag.core.models import RefinedChunk
from meetrag.core.provider_base import ProviderMixin
from meetrag.refine.chunking import bound_chunks, extract_json_array

REFINEMENT_SYSTEM_PROMPT = """\
You are a text processor for a video conference transcription. Refine, chunk \
and summarize the unrefined transcript you are given. The output MUST be a \
JSON array of objects, one per semantically coherent chunk of dialogue.

Rules:
1. Refine the dialogue: correct grammar, remove filler words (e.g. "you know", \
"like", "um", "ah") and strip non-dialogue text.
2. Chunk the dialogue into small logical chunks, usually at a change of topic \
or a pause in the conversation.
3. Preserve line structure: each line of refined_text starts with "- " and \
ends with a newline.
4. The dialogue is part of an ongoing meeting and may lack a beginning or end. \
Do not invent information to fill gaps.
5. A chunk may contain lines from several people.
6. Do NOT add speaker names; the transcript does not identify speakers.
7. Give each chunk a very short, one-sentence summary.
8. Each object has exactly two keys: "summary" and "refined_text".

Do not add any text outside the JSON array.

Example:
[
  {
    "summary": "Discussion about the fear of AI's rapid progress.",
    "refined_text": "- Because of AI's rapid progress, do you fear anything today?\\n- I hope that we shape AI in a positive way."
  }
]
"""


class GroqRefiner(ProviderMixin):
    """RefinementProvider backed by Groq chat completions."""

    _provider_name: str = "groq_refinement"
    _retryable_exceptions: tuple[type[Exception], ...] = (
        RateLimitError,
        APIConnectionError,
        APITimeoutError,
        InternalServerError,
        ConnectionError,
    )

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = "qwen/qwen3-32b",
        max_chunk_chars: int = 1200,
        temperature: float = 0.6,
        max_completion_tokens: int = 4096,
        retry_config: Any | None = None,
    ) -> None:
        super().__init__(api_key=api_key, model=model, retry_config=retry_config)
        self.client = AsyncGroq(api_key=api_key)
        self._max_chunk_chars = max_chunk_chars
        self._temperature = temperature
        self._max_completion_tokens = max_completion_tokens

    async def refine(self, text: str) -> list[RefinedChunk]:
        """Refine raw transcript text into bounded chunks with summaries.

        Raises:
            ProviderError: If the API call fails or the response holds no
                usable JSON array.
        """
        operation_logger = self._logger.bind(text_length=len(text), operation="refine")
        operation_logger.debug("refinement_started")

        retry_decorator = self._get_retry_decorator()

        @retry_decorator
        async def _refine_with_retry() -> Any:
            return await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": REFINEMENT_SYSTEM_PROMPT},
                    {"role": "user", "content": text},
                ],
                temperature=self._temperature,
                max_completion_tokens=self._max_completion_tokens,
                top_p=0.95,
            )

        try:
            response = await _refine_with_retry()
        except Exception as e:
            raise await self._wrap_error(e, "refine")

        content = (response.choices[0].message.content or "") if response.choices else ""
        try:
            items = extract_json_array(content)
        except ValueError as e:
            raise ProviderError(
                message=f"{self._provider_name} returned an unusable response: {e}",
                provider=self._provider_name,
                retryable=False,
            ) from e

        chunks = bound_chunks(
            [
                RefinedChunk(
                    summary=str(item.get("summary") or "").strip(),
                    text=str(item.get("refined_text") or ""),
                )
                for item in items
            ],
            self._max_chunk_chars,
        )
        if not chunks:
            raise ProviderError(
                message=f"{self._provider_name} returned no chunks for non-empty text",
                provider=self._provider_name,
                retryable=False,
            )
        operation_logger.info("refinement_completed", chunks_count=len(chunks))
        return chunks
