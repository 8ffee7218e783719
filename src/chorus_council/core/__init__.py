"""Core configuration, errors and event signing helpers."""
