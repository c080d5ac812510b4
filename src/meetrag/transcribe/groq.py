"""Groq Speech-to-Text provider using Whisper Large v3."""

from __future__ import annotations

from typing import Any

from groq import APIConnectionError, APITimeoutError, AsyncGroq, InternalServerError, RateLimitError

from meetrag.core.models import TranscriptionHints
from meetrag.transcribe._base import TranscriberMixin


class GroqTranscriber(TranscriberMixin):
    """Speech-to-Text provider using Groq's hosted Whisper models."""

    _provider_name: str = "groq_stt"
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
        model: str = "whisper-large-v3",
        language: str | None = None,
        retry_config: Any | None = None,
    ) -> None:
        super().__init__(api_key=api_key, model=model, language=language, retry_config=retry_config)
        self.client = AsyncGroq(api_key=api_key)

    async def transcribe(self, data: bytes, hints: TranscriptionHints) -> str:
        """Transcribe an audio chunk and return its plain text."""
        operation_logger = self._logger.bind(
            filename=hints.filename,
            size_bytes=len(data),
            operation="transcribe",
        )
        operation_logger.debug("transcription_started")

        retry_decorator = self._get_retry_decorator()
        language = self._language_for(hints)

        @retry_decorator
        async def _transcribe_with_retry() -> Any:
            kwargs: dict[str, Any] = {}
            if language:
                kwargs["language"] = language
            return await self.client.audio.transcriptions.create(
                model=self.model,
                file=self._file_tuple(data, hints),
                response_format="json",
                **kwargs,
            )

        try:
            response = await _transcribe_with_retry()
        except Exception as e:
            raise await self._wrap_error(e, "transcribe")

        text = self._extract_text(response)
        operation_logger.info("transcription_completed", text_length=len(text))
        return text
