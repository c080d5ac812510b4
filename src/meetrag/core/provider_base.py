"""Shared plumbing for vendor-backed providers."""

from __future__ import annotations

from typing import Any

from meetrag.core.exceptions import ProviderError
from meetrag.core.logging_config import get_logger
from meetrag.core.retry_config import RetryConfig, create_retry_decorator

logger = get_logger(__name__)


class ProviderMixin:
    """Mixin providing retry, logging and error wrapping for providers.

    Subclasses must set:
    - _provider_name: str
    - _retryable_exceptions: tuple[type[Exception], ...]
    """

    _provider_name: str = "provider"
    _retryable_exceptions: tuple[type[Exception], ...] = (
        ConnectionError,
        TimeoutError,
    )

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str,
        retry_config: RetryConfig | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            api_key: Provider API key. If None, the SDK reads its own
                environment variable.
            model: Vendor model name.
            retry_config: Retry configuration. Uses default if not provided.
        """
        self._model = model
        self._retry_config = retry_config or RetryConfig()
        self._logger = logger.bind(provider=self._provider_name, model=model)
        self._api_key = api_key

    @property
    def model(self) -> str:
        return self._model

    @model.setter
    def model(self, value: str) -> None:
        self._model = value
        self._logger = self._logger.bind(model=value)

    def _get_retry_decorator(self) -> Any:
        """Get retry decorator configured for provider API calls."""
        return create_retry_decorator(
            config=self._retry_config,
            exception_types=self._retryable_exceptions,
        )

    async def _wrap_error(self, e: Exception, operation: str) -> ProviderError:
        """Wrap a vendor error in a ProviderError.

        Errors that are already ProviderErrors pass through unchanged.
        """
        if isinstance(e, ProviderError):
            return e
        return ProviderError(
            message=f"{self._provider_name} {operation} failed: {e}",
            provider=self._provider_name,
            retryable=isinstance(e, self._retryable_exceptions),
        )
