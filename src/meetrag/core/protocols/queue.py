from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable


@runtime_checkable
class Delivery(Protocol):
    """A claimed message. Exactly one of ack/nack must be called."""

    message_id: str
    body: str

    async def ack(self) -> None: ...

    async def nack(self, requeue: bool = False) -> None: ...


@runtime_checkable
class JobQueue(Protocol):
    async def publish(self, body: str) -> str: ...

    async def claim(self) -> Delivery | None: ...

    async def consume(self, handler: Callable[[Delivery], Awaitable[None]]) -> None: ...

    def stop(self) -> None: ...
