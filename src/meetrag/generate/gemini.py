"""Google Gemini streaming generation provider."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from meetrag.generate._base import GeneratorMixin


class GeminiGenerator(GeneratorMixin):
    """Google Gemini LLM generation provider."""

    _provider_name: str = "gemini_generation"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = "gemini-2.5-flash",
        temperature: float = 0.2,
        max_output_tokens: int | None = None,
        retry_config: Any | None = None,
    ) -> None:
        import httpx
        from google import genai
        from google.genai import errors as genai_errors

        self._retryable_exceptions: tuple[type[Exception], ...] = (
            genai_errors.ServerError,
            httpx.ConnectError,
            httpx.NetworkError,
            httpx.TimeoutException,
            ConnectionError,
        )
        super().__init__(
            api_key=api_key,
            model=model,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            retry_config=retry_config,
        )
        self._client = genai.Client(api_key=api_key) if api_key else genai.Client()

    async def stream(self, prompt: str, *, system_prompt: str) -> AsyncIterator[str]:
        from google.genai import types

        operation_logger = self._logger.bind(prompt_length=len(prompt), operation="stream")
        operation_logger.debug("generation_started")

        retry_decorator = self._get_retry_decorator()
        config = types.GenerateContentConfig(
            system_instruction=system_prompt,
            temperature=self._temperature,
            max_output_tokens=self._max_output_tokens,
        )

        @retry_decorator
        async def _open_stream() -> Any:
            return await self._client.aio.models.generate_content_stream(
                model=self.model,
                contents=prompt,
                config=config,
            )

        answer_length = 0
        try:
            response = await _open_stream()
            async for chunk in response:
                text = chunk.text
                if text:
                    answer_length += len(text)
                    yield text
        except Exception as e:
            raise await self._wrap_error(e, "stream")
        operation_logger.info("generation_completed", answer_length=answer_length)
