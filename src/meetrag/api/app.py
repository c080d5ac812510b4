"""FastAPI application factory for meetrag."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import meetrag
from meetrag.api.errors import install_error_handlers
from meetrag.api.routes_chat import router as chat_router
from meetrag.api.routes_sessions import router as sessions_router
from meetrag.core.config import MeetRAGConfig
from meetrag.core.logging_config import get_logger
from meetrag.services import Services
from meetrag.worker import PipelineWorker

logger = get_logger(__name__)


def create_app(config: MeetRAGConfig | None = None, services: Services | None = None) -> FastAPI:
    """Build the API application.

    Args:
        config: Settings; read from the environment when omitted.
        services: Pre-built services (e.g. with fake providers). Their
            lifecycle is managed by the application either way.
    """
    config = config or (services.config if services else MeetRAGConfig())
    services = services or Services.from_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await services.start()
        workers: list[PipelineWorker] = []
        tasks: list[asyncio.Task[None]] = []
        for i in range(config.embedded_workers):
            worker = await services.open_worker(name=f"embedded-{i}")
            workers.append(worker)
            tasks.append(asyncio.create_task(worker.run()))
        if workers:
            logger.info("embedded_workers_started", count=len(workers))
        try:
            yield
        finally:
            for worker in workers:
                worker.stop()
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
            await services.close()

    app = FastAPI(
        title="meetrag",
        version=meetrag.__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials="*" not in config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    app.include_router(sessions_router, prefix="/api", tags=["sessions"])
    app.include_router(chat_router, prefix="/api", tags=["chat"])

    @app.get("/health", tags=["admin"])
    async def health() -> dict[str, bool]:
        """Simple liveness check."""
        return {"ok": True}

    return app
