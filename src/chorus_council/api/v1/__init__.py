# src/chorus_council/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    communities_router,
    events_router,
    kicks_router,
    moderation_router,
    proposals_router,
    system_router,
)

__all__ = [
    "events_router",
    "communities_router",
    "proposals_router",
    "kicks_router",
    "moderation_router",
    "system_router",
]
