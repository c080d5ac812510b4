"""Logging configuration for meetrag using structlog.

Structured console logging shared by the API process and the pipeline
workers. Supports context binding, operation timing, and configurable levels.
"""

from __future__ import annotations

import logging
import sys
import time
from typing import Any

import structlog


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "colored",
    log_timestamps: bool = True,
) -> None:
    """Configure structlog on top of stdlib logging.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR)
        log_format: "colored" for interactive terminals, "plain" for
            redirection, "json" for log shippers
        log_timestamps: Whether to include timestamps
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso" if log_timestamps else None),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    elif log_format == "colored":
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper()),
        force=True,
    )

    # Third-party loggers are noisy at INFO
    for noisy in ("urllib3", "httpx", "openai", "groq", "chromadb", "google_genai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance.

    Args:
        name: Logger name, typically __name__

    Returns:
        BoundLogger with structured logging capabilities
    """
    return structlog.get_logger(name)


class Timer:
    """Context manager for timing operations and logging duration.

    Example:
        with Timer(logger, "transcribe", blob_ref=ref) as timer:
            text = await stt.transcribe(data, hints)
            timer.complete(text_length=len(text))
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation: str,
        **context: Any,
    ) -> None:
        self.logger = logger.bind(operation=operation, **context)
        self.operation = operation
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self._completed = False

    def __enter__(self) -> Timer:
        self.start_time = time.monotonic()
        self.logger.debug(f"{self.operation}_started")
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.end_time = time.monotonic()
        duration_ms = (self.end_time - self.start_time) * 1000

        if exc_type is None:
            if not self._completed:
                self.logger.info(
                    f"{self.operation}_completed",
                    duration_ms=round(duration_ms, 2),
                )
        else:
            self.logger.error(
                f"{self.operation}_failed",
                duration_ms=round(duration_ms, 2),
                error_type=exc_type.__name__,
                error=str(exc_val) if exc_val else None,
            )

    def complete(self, **extra_context: Any) -> None:
        """Mark operation as complete with additional context.

        Args:
            **extra_context: Additional fields to include in completion log
        """
        self.end_time = time.monotonic()
        duration_ms = (self.end_time - self.start_time) * 1000
        self._completed = True

        self.logger.info(
            f"{self.operation}_completed",
            duration_ms=round(duration_ms, 2),
            **extra_context,
        )
