"""
seqframe - Sequence-Synchronized Frame Protocol

FastAPI application entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from seqframe import __version__
from seqframe.app.api import actions_router, sessions_router, thoughts_router
from seqframe.app.dependencies import (
    get_services,
    get_settings,
    initialize_services,
    shutdown_services,
)
from seqframe.protocol import get_metrics

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    logger.info("Starting seqframe services...")
    try:
        await initialize_services()
        logger.info("seqframe services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise

    yield

    # Shutdown
    logger.info("Shutting down seqframe services...")
    await shutdown_services()


# Create FastAPI application
settings = get_settings()

app = FastAPI(
    title="seqframe",
    description="Sequence-synchronized frames for agents acting on live state",
    version=__version__,
    lifespan=lifespan,
    debug=settings.debug,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(actions_router, prefix="/api/v1")
app.include_router(thoughts_router, prefix="/api/v1")
app.include_router(sessions_router, prefix="/api/v1")


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    """Root endpoint with service info."""
    return {
        "service": settings.service_name,
        "version": __version__,
        "status": "running",
    }


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, Any]:
    """
    Health check endpoint.

    Returns the frame store head, registered executors and open sessions.
    """
    services = get_services()
    return {
        "status": "healthy",
        "head": services.store.head,
        "executors": services.registry.list_names(),
        "sessions": len(services.sessions.sessions()),
    }


@app.get("/api/v1/metrics", tags=["health"])
async def metrics() -> dict[str, Any]:
    """Protocol counters."""
    return get_metrics().get_stats()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "seqframe.app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
