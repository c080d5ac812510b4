"""Base transcriber class for STT providers."""

from __future__ import annotations

from pathlib import PurePath

from meetrag.core.models import TranscriptionHints
from meetrag.core.provider_base import ProviderMixin


class TranscriberMixin(ProviderMixin):
    """Common behaviour for speech-to-text providers.

    Providers receive raw bytes, so the upload needs a filename whose
    extension tells the vendor which container it is looking at.
    """

    _provider_name: str = "transcriber"

    def __init__(self, *, language: str | None = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self._language = language

    def _file_tuple(self, data: bytes, hints: TranscriptionHints) -> tuple[str, bytes]:
        name = PurePath(hints.filename).name or "audio.webm"
        if not PurePath(name).suffix:
            name = f"{name}.webm"
        return (name, data)

    def _language_for(self, hints: TranscriptionHints) -> str | None:
        return hints.language or self._language

    @staticmethod
    def _extract_text(response: object) -> str:
        if isinstance(response, str):
            return response.strip()
        if isinstance(response, dict):
            return str(response.get("text") or "").strip()
        return str(getattr(response, "text", "") or "").strip()
