# src/chorus_council/main.py
"""Main entry point for the Chorus Council API."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chorus_council.api.v1 import (
    communities_router,
    events_router,
    kicks_router,
    moderation_router,
    proposals_router,
    system_router,
)
from chorus_council.core.settings import settings
from chorus_council.services.processor import get_event_processor

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Community governance and moderation reconciliation engine",
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

for router in (
    events_router,
    communities_router,
    proposals_router,
    kicks_router,
    moderation_router,
    system_router,
):
    app.include_router(router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    processor = get_event_processor()
    app.state.processor = processor
    logger.info("Chorus Council started with signing key %s", processor.transport.public_key)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    processor = getattr(app.state, "processor", None)
    if processor is not None:
        await processor.close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Unversioned liveness probe."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Describe the service and point at the interactive docs."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Community governance and moderation reconciliation engine",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("chorus_council.main:app", host="127.0.0.1", port=8000, reload=settings.debug)
