from typing import Protocol, runtime_checkable

from meetrag.core.models import AudioProbeResult


@runtime_checkable
class AudioProbe(Protocol):
    async def probe(self, data: bytes, filename: str) -> AudioProbeResult: ...
