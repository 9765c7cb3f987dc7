"""Main FastAPI application and app factory."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from memstore.config.settings import Settings, load_settings
from memstore.errors import MemoryStoreError
from memstore.integrate import create_memory_store
from memstore.memory.store import MemoryStore
from memstore.telemetry import configure_logging
from .memory import router as memory_router
from .schemas import HealthResponse

logger = logging.getLogger(__name__)


def create_app(store: Optional[MemoryStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        store: Pre-built store (tests); otherwise built from settings on startup
        settings: Settings; loaded from MEMSTORE_CONFIG / env when omitted
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        nonlocal store
        cfg = settings or load_settings()
        app.state.settings = cfg
        configure_logging(cfg.server.log_level, cfg.server.json_logs)
        if store is None:
            store = create_memory_store(cfg)
        app.state.store = store
        store.on_start()
        try:
            yield
        finally:
            store.close()
            app.state.store = None

    app = FastAPI(
        title="memstore API",
        description="Conversation memory with summaries, search and extractors",
        version="0.1.0",
        lifespan=lifespan,
    )
    # Available before startup when a store is injected
    app.state.store = store
    app.state.settings = settings

    @app.exception_handler(MemoryStoreError)
    async def memory_store_error_handler(request: Request, exc: MemoryStoreError):
        if exc.http_status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.http_status, content={"detail": exc.to_dict()})

    @app.get("/healthz", response_model=HealthResponse)
    async def healthz(request: Request):
        """Health check endpoint."""
        current = request.app.state.store
        if current is None:
            return JSONResponse(status_code=503, content={"status": "starting", "extractors": []})
        return HealthResponse(status="ok", extractors=[e.name for e in current.registry.extractors])

    app.include_router(memory_router, prefix="/api/v1")
    return app
