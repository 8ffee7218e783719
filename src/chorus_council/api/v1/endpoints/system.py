"""System endpoints for the Chorus Council API."""

from __future__ import annotations

from fastapi import APIRouter

from chorus_council.api.v1.dependencies import ProcessorDep
from chorus_council.core.settings import settings

router = APIRouter(tags=["system"])


@router.get("/health")
async def health(processor: ProcessorDep) -> dict[str, object]:
    """Report liveness together with the processor's counters."""
    return {
        "status": "ok",
        "version": settings.app_version,
        "public_key": processor.transport.public_key,
        "stats": processor.stats(),
    }


@router.get("/config")
async def get_public_config() -> dict[str, object]:
    """Return the reconciliation settings in effect."""
    return {
        "app": {"name": settings.app_name, "version": settings.app_version},
        "kick_quorum_ratio": settings.kick_quorum_ratio,
        "pending_window": settings.pending_window,
        "default_proposal_duration_seconds": settings.default_proposal_duration_seconds,
        "event_log_max_events": settings.event_log_max_events,
        "require_signatures": settings.require_signatures,
    }
