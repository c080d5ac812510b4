"""Server-sent event encoding of chat streams."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator

from meetrag.chat import ChatEvent, EndOfStream, Fragment, Heartbeat

HEARTBEAT_FRAME = ": heartbeat\n\n"
END_FRAME = 'data: {"event": "stream_end"}\n\n'


def encode_event(event: ChatEvent) -> str:
    match event:
        case Fragment(text=text):
            return f"data: {json.dumps({'text': text})}\n\n"
        case Heartbeat():
            return HEARTBEAT_FRAME
        case EndOfStream():
            return END_FRAME


async def sse_frames(events: AsyncIterator[ChatEvent]) -> AsyncIterator[str]:
    async for event in events:
        yield encode_event(event)
