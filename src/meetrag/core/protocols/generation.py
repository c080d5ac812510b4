from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable


@runtime_checkable
class GenerationProvider(Protocol):
    """Streams answer fragments; exhaustion of the iterator ends the answer."""

    def stream(self, prompt: str, *, system_prompt: str) -> AsyncIterator[str]: ...
