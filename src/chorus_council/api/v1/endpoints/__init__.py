# src/chorus_council/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .communities import router as communities_router
from .events import router as events_router
from .kicks import router as kicks_router
from .moderation import router as moderation_router
from .proposals import router as proposals_router
from .system import router as system_router

__all__ = [
    "events_router",
    "communities_router",
    "proposals_router",
    "kicks_router",
    "moderation_router",
    "system_router",
]
