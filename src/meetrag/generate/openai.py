"""OpenAI streaming generation provider."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from openai import APIConnectionError, APITimeoutError, AsyncOpenAI, InternalServerError, RateLimitError

from meetrag.generate._base import GeneratorMixin


class OpenAIGenerator(GeneratorMixin):
    """OpenAI chat-completion generation provider."""

    _provider_name: str = "openai_generation"
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
        model: str = "gpt-4o-mini",
        temperature: float = 0.2,
        max_output_tokens: int | None = None,
        retry_config: Any | None = None,
    ) -> None:
        super().__init__(
            api_key=api_key,
            model=model,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            retry_config=retry_config,
        )
        self.client = AsyncOpenAI(api_key=api_key)

    async def stream(self, prompt: str, *, system_prompt: str) -> AsyncIterator[str]:
        """Stream answer fragments for ``prompt``."""
        operation_logger = self._logger.bind(prompt_length=len(prompt), operation="stream")
        operation_logger.debug("generation_started")

        retry_decorator = self._get_retry_decorator()

        @retry_decorator
        async def _open_stream() -> Any:
            kwargs: dict[str, Any] = {}
            if self._max_output_tokens:
                kwargs["max_tokens"] = self._max_output_tokens
            return await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt},
                ],
                temperature=self._temperature,
                stream=True,
                **kwargs,
            )

        answer_length = 0
        try:
            response = await _open_stream()
            async for chunk in response:
                if not chunk.choices:
                    continue
                text = chunk.choices[0].delta.content
                if text:
                    answer_length += len(text)
                    yield text
        except Exception as e:
            raise await self._wrap_error(e, "stream")
        operation_logger.info("generation_completed", answer_length=answer_length)
