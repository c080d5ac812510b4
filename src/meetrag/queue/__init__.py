"""Durable job queue and message wire format."""

from __future__ import annotations

from meetrag.queue.messages import JobMessage, decode_message, encode_message
from meetrag.queue.sqlite import SqliteDelivery, SqliteJobQueue

__all__ = [
    "JobMessage",
    "SqliteDelivery",
    "SqliteJobQueue",
    "decode_message",
    "encode_message",
]
