# src/chatchain/main.py
"""Main entry point for the ChatChain sync API."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from chatchain.api.v1 import conversations_router, messages_router, system_router
from chatchain.core.settings import settings
from chatchain.db.session import create_tables
from chatchain.services.sync_engine import MessageSyncEngine, build_engine

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="ChatChain API",
    description="Message synchronization and caching engine",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(messages_router, prefix="/api/v1")
app.include_router(conversations_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    if getattr(app.state, "engine", None) is None:
        create_tables()
        app.state.engine = build_engine()
    engine: MessageSyncEngine = app.state.engine
    logger.info(
        "ChatChain started with %d cached messages (%s mode)",
        len(engine.cache),
        "demo" if engine.content_store.demo_mode else "configured",
    )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    engine: MessageSyncEngine | None = getattr(app.state, "engine", None)
    if engine:
        await engine.content_store.close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Message synchronization and caching engine",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("chatchain.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
