"""Wire format of queued jobs.

Messages are JSON objects tagged with a ``kind`` field. The set of kinds is
closed: anything else is a poison message.
"""

from __future__ import annotations

import json
from typing import TypeAlias

from pydantic import BaseModel, ValidationError

from meetrag.core.exceptions import MessageDecodeError
from meetrag.core.models import TranscribeChunk

JobMessage: TypeAlias = TranscribeChunk

_MESSAGE_TYPES: dict[str, type[BaseModel]] = {
    "transcribe_chunk": TranscribeChunk,
}


def encode_message(message: JobMessage) -> str:
    return message.model_dump_json()


def decode_message(body: str | bytes) -> JobMessage:
    """Decode a queued message body into its variant.

    Raises:
        MessageDecodeError: If the body is not JSON, has an unknown kind, or
            does not match the variant's schema.
    """
    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise MessageDecodeError(f"Message body is not valid JSON: {e}", body=text) from e

    if not isinstance(raw, dict):
        raise MessageDecodeError("Message body must be a JSON object", body=text)

    kind = raw.get("kind")
    model = _MESSAGE_TYPES.get(kind) if isinstance(kind, str) else None
    if model is None:
        raise MessageDecodeError(f"Unknown message kind: {kind!r}", body=text)

    try:
        return model.model_validate(raw)  # type: ignore[return-value]
    except ValidationError as e:
        raise MessageDecodeError(f"Invalid {kind} message: {e}", body=text) from e
