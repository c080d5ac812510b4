"""Map meetrag exceptions to HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from meetrag.core.exceptions import (
    ChunkValidationError,
    MeetRAGError,
    NotFoundError,
    PersistenceError,
    ProviderError,
    SessionStateError,
    TransientInfraError,
)
from meetrag.core.logging_config import get_logger

logger = get_logger(__name__)

VALIDATION_STATUS = {
    "too_large": 413,
    "too_long": 422,
    "undecodable": 422,
    "unsupported_format": 415,
}

_STATUS_BY_TYPE: tuple[tuple[type[MeetRAGError], int], ...] = (
    (NotFoundError, 404),
    (SessionStateError, 409),
    (TransientInfraError, 503),
    (ProviderError, 502),
    (PersistenceError, 500),
)


def status_for(exc: MeetRAGError) -> int:
    if isinstance(exc, ChunkValidationError):
        return VALIDATION_STATUS.get(exc.reason, 422)
    for exc_type, status in _STATUS_BY_TYPE:
        if isinstance(exc, exc_type):
            return status
    return 500


async def meetrag_error_handler(request: Request, exc: MeetRAGError) -> JSONResponse:
    status = status_for(exc)
    body: dict[str, str] = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, ChunkValidationError):
        body["reason"] = exc.reason
    log = logger.bind(path=request.url.path, status=status, error_type=type(exc).__name__)
    if status >= 500:
        log.error("request_failed", error=str(exc))
    else:
        log.info("request_rejected", error=str(exc))
    return JSONResponse(status_code=status, content=body)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MeetRAGError, meetrag_error_handler)  # type: ignore[arg-type]
