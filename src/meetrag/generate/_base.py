"""Base generator mixin for streaming LLM providers."""

from __future__ import annotations

from typing import Any

from meetrag.core.provider_base import ProviderMixin


class GeneratorMixin(ProviderMixin):
    """Common settings for streaming generation providers.

    Only opening the stream is retried. Once fragments have been handed to
    the caller a failure is raised as a ProviderError, because repeating the
    call would duplicate text the client has already seen.
    """

    _provider_name: str = "generator"

    def __init__(
        self,
        *,
        temperature: float = 0.2,
        max_output_tokens: int | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
