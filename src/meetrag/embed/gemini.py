"""Google Gemini embedding provider."""

from __future__ import annotations

from typing import Any

from meetrag.core.exceptions import ProviderError
from meetrag.core.provider_base import ProviderMixin


class GeminiEmbeddingProvider(ProviderMixin):
    """Embedding provider using the google-genai SDK.

    Vectors default to 768 dimensions.
    """

    _provider_name: str = "gemini_embedding"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = "gemini-embedding-001",
        dimensions: int = 768,
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
        super().__init__(api_key=api_key, model=model, retry_config=retry_config)
        self._client = genai.Client(api_key=api_key) if api_key else genai.Client()
        self._dimensions = dimensions

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        from google.genai import types

        operation_logger = self._logger.bind(texts_count=len(texts), operation="embed")
        operation_logger.debug("embedding_started")

        retry_decorator = self._get_retry_decorator()

        @retry_decorator
        async def _embed_with_retry() -> Any:
            return await self._client.aio.models.embed_content(
                model=self.model,
                contents=texts,
                config=types.EmbedContentConfig(output_dimensionality=self._dimensions),
            )

        try:
            response = await _embed_with_retry()
        except Exception as e:
            raise await self._wrap_error(e, "embed")

        embeddings = [list(item.values or []) for item in response.embeddings or []]
        if len(embeddings) != len(texts):
            raise ProviderError(
                message=(
                    f"{self._provider_name} returned {len(embeddings)} embeddings "
                    f"for {len(texts)} texts"
                ),
                provider=self._provider_name,
                retryable=False,
            )
        operation_logger.info(
            "embedding_completed",
            embeddings_count=len(embeddings),
            dimensions=len(embeddings[0]) if embeddings else 0,
        )
        return embeddings
