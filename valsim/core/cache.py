from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from valsim.utils.logging import get_logger

logger = get_logger(__name__)

V = TypeVar("V")

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    value: V
    expires_at: float


class SessionCache(Generic[V]):
    """Holds a single expensive-to-obtain value (e.g. an auth handshake) until it expires.

    The cache is owned by whoever performs the handshake and is passed to it
    explicitly, so there is no module-level session state.
    """

    def __init__(self, ttl_seconds: float, clock: Clock = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entry: CacheEntry[V] | None = None

    def get(self) -> V | None:
        if self._entry is None:
            return None
        if self._clock() >= self._entry.expires_at:
            logger.debug("Session expired, discarding cached value")
            self._entry = None
            return None
        return self._entry.value

    def set(self, value: V) -> None:
        self._entry = CacheEntry(value=value, expires_at=self._clock() + self.ttl_seconds)

    def clear(self) -> None:
        self._entry = None


class TTLCache(Generic[V]):
    """Keyed in-memory cache where every entry lives for ``ttl_seconds``."""

    def __init__(self, ttl_seconds: float, clock: Clock = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry[V]] = {}

    def get(self, key: str) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: V) -> None:
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + self.ttl_seconds)

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()
