# src/chorus_council/utils/locks.py
"""Per-key mutual exclusion for projection maps."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock


@dataclass
class _Slot:
    lock: Lock = field(default_factory=Lock)
    holders: int = 0  # threads holding or waiting on ``lock``


class KeyedLock:
    """Hand out one lock per key, created on demand and dropped when idle.

    Updates to the same key are serialized; updates to different keys never
    wait on each other beyond the brief registry lookup.
    """

    def __init__(self) -> None:
        self._registry_lock = Lock()
        self._slots: dict[str, _Slot] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        with self._registry_lock:
            slot = self._slots.setdefault(key, _Slot())
            slot.holders += 1
        try:
            with slot.lock:
                yield
        finally:
            with self._registry_lock:
                slot.holders -= 1
                if slot.holders == 0:
                    self._slots.pop(key, None)

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._slots)
