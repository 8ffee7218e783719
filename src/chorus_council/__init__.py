"""Chorus Council: community governance and moderation reconciliation engine."""

__version__ = "0.1.0"
