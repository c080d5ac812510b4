"""meetrag package.

Live meeting transcription with retrieval-augmented chat.

Audio chunks from a live session are validated, stored and queued by the
ingestion gateway; pipeline workers transcribe, refine and index them; the
chat orchestrator answers questions over the transcript and earlier chat
turns as a streamed response.

Usage:
    from meetrag import MeetRAGConfig
    from meetrag.services import Services

    services = Services.from_config(MeetRAGConfig())
    await services.start()
    session = await services.sessions.start_session()
    async for event in services.chat.ask(session.session_id, "What was decided?"):
        ...
"""

from __future__ import annotations

from meetrag.core import (
    MeetRAGConfig,
    MeetRAGError,
    RetryConfig,
    configure_logging,
    get_logger,
)

__version__ = "0.1.0"

__all__ = [
    "MeetRAGConfig",
    "MeetRAGError",
    "RetryConfig",
    "__version__",
    "configure_logging",
    "get_logger",
]
