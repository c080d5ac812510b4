"""OpenAI embedding provider implementation."""

from __future__ import annotations

from typing import Any

from openai import APIConnectionError, APITimeoutError, AsyncOpenAI, InternalServerError, RateLimitError

from meetrag.core.provider_base import ProviderMixin


class OpenAIEmbeddingProvider(ProviderMixin):
    """Embedding provider using OpenAI's embedding models.

    Satisfies the EmbeddingProvider Protocol by implementing the async embed method.
    """

    _provider_name: str = "openai_embedding"
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
        model: str = "text-embedding-3-small",
        dimensions: int | None = None,
        client: AsyncOpenAI | None = None,
        retry_config: Any | None = None,
    ) -> None:
        """Initialize the OpenAI embedding provider.

        Args:
            api_key: OpenAI API key. If None, uses OPENAI_API_KEY.
            model: The embedding model to use.
            dimensions: Optional output dimensionality (text-embedding-3 models).
            client: AsyncOpenAI client instance. If None, a new client will be created.
            retry_config: Retry configuration. Uses default if not provided.
        """
        super().__init__(api_key=api_key, model=model, retry_config=retry_config)
        self.client = client or AsyncOpenAI(api_key=api_key)
        self._dimensions = dimensions

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for a list of texts.

        Returns:
            One vector per input text, in input order.
        """
        if not texts:
            return []
        operation_logger = self._logger.bind(texts_count=len(texts), operation="embed")
        operation_logger.debug("embedding_started")

        retry_decorator = self._get_retry_decorator()

        @retry_decorator
        async def _embed_with_retry() -> Any:
            kwargs: dict[str, Any] = {}
            if self._dimensions:
                kwargs["dimensions"] = self._dimensions
            return await self.client.embeddings.create(model=self.model, input=texts, **kwargs)

        try:
            response = await _embed_with_retry()
        except Exception as e:
            raise await self._wrap_error(e, "embed")

        embeddings = [item.embedding for item in sorted(response.data, key=lambda d: d.index)]
        operation_logger.info(
            "embedding_completed",
            embeddings_count=len(embeddings),
            dimensions=len(embeddings[0]) if embeddings else 0,
        )
        return embeddings
