from typing import Protocol, runtime_checkable

from meetrag.core.models import TranscriptionHints


@runtime_checkable
class STTProvider(Protocol):
    async def transcribe(self, data: bytes, hints: TranscriptionHints) -> str: ...
