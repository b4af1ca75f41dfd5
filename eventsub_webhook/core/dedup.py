"""Tracking of already handled EventSub message IDs.

Twitch delivers notifications at least once, so the same message ID may
arrive more than once. The dispatcher acknowledges repeats without
forwarding them to the user handler.
"""

import threading
from typing import Protocol, runtime_checkable

from cachetools import TTLCache  # type: ignore[import-untyped]


@runtime_checkable
class HandledEventsChecker(Protocol):
    """Pluggable store of handled message IDs."""

    def is_handled(self, message_id: str) -> bool: ...

    def mark_handled(self, message_id: str) -> None: ...


class InMemoryHandledEventsChecker:
    """Unbounded in-process store, kept for the life of the process."""

    def __init__(self) -> None:
        self._handled: set[str] = set()
        self._lock = threading.Lock()

    def is_handled(self, message_id: str) -> bool:
        with self._lock:
            return message_id in self._handled

    def mark_handled(self, message_id: str) -> None:
        with self._lock:
            self._handled.add(message_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._handled)


class BoundedHandledEventsChecker:
    """Capacity and TTL bounded store.

    Entries expire after *ttl* seconds or when *maxsize* is exceeded (oldest
    first). Twitch stops retrying well within the default TTL, and older
    messages are dropped by the freshness check anyway.
    """

    def __init__(self, maxsize: int = 10_000, ttl: float = 3600.0):
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._lock = threading.Lock()

    def is_handled(self, message_id: str) -> bool:
        with self._lock:
            return message_id in self._cache

    def mark_handled(self, message_id: str) -> None:
        with self._lock:
            self._cache[message_id] = True

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


def create_handled_events_checker(maxsize: int = 0, ttl: float = 3600.0) -> HandledEventsChecker:
    """Build the default checker. ``maxsize=0`` means unbounded."""
    if maxsize > 0:
        return BoundedHandledEventsChecker(maxsize=maxsize, ttl=ttl)
    return InMemoryHandledEventsChecker()
