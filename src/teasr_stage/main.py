# src/teasr_stage/main.py
"""Main entry point for the TEASR Stage application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from teasr_stage.api.v1 import investors_router, posts_router, users_router
from teasr_stage.core.settings import settings
from teasr_stage.services.registry import get_services
from teasr_stage.services.viral_sweep import ViralSweepWorker

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="TEASR API",
    description="Pay-to-reveal content with investor revenue sharing",
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
app.include_router(posts_router, prefix="/api/v1")
app.include_router(investors_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    if settings.viral_sweep_enabled:
        worker = ViralSweepWorker(
            get_services().viral_sweep, settings.viral_sweep_interval_seconds
        )
        await worker.start()
        app.state.viral_worker = worker
        logger.info(
            "Viral sweep running every %.0fs (threshold %d upvotes)",
            settings.viral_sweep_interval_seconds,
            settings.viral_upvote_threshold,
        )
    else:
        app.state.viral_worker = None


@app.on_event("shutdown")
async def on_shutdown() -> None:
    worker: ViralSweepWorker | None = getattr(app.state, "viral_worker", None)
    if worker:
        await worker.stop()
    await get_services().close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "TEASR API",
        "version": settings.app_version,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("teasr_stage.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
