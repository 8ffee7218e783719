# src/chorus_council/services/__init__.py
"""Reducers, transport adapters and the event processor."""

from .communities import CommunityReducer
from .kicks import KickConsensusEngine
from .loopback import LoopbackRelay
from .moderation import ModerationPipeline
from .pending import PendingEventBuffer
from .processor import EventProcessor, ProcessedEvent, get_event_processor
from .proposals import ProposalEngine
from .transport import RelayTransport
from .validator import EventValidator

__all__ = [
    "CommunityReducer",
    "EventProcessor",
    "EventValidator",
    "KickConsensusEngine",
    "LoopbackRelay",
    "ModerationPipeline",
    "PendingEventBuffer",
    "ProcessedEvent",
    "ProposalEngine",
    "RelayTransport",
    "get_event_processor",
]
