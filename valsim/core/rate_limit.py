import asyncio
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import ClassVar

from valsim.utils.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]


class RateLimitError(Exception):
    pass


@dataclass(frozen=True)
class RateLimitStats:
    name: str
    in_window: int
    max_requests: int
    window_seconds: float

    @property
    def saturated(self) -> bool:
        return self.in_window >= self.max_requests

    def __str__(self) -> str:
        return f"{self.name}: {self.in_window}/{self.max_requests} requests in {self.window_seconds:g}s"


class RateLimiter:
    """Sliding-window limiter shared per upstream host.

    ``acquire`` never waits: a full window raises ``RateLimitError`` and the
    caller's ``with_retry`` backoff does the waiting.
    """

    _instances: ClassVar[dict[str, "RateLimiter"]] = {}
    _registry_lock: ClassVar[asyncio.Lock | None] = None

    def __init__(self, name: str, max_requests: int, window_seconds: float, clock: Clock = time.monotonic):
        self.name = name
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._sent: deque[float] = deque()
        self._lock = asyncio.Lock()

    @classmethod
    async def shared(cls, name: str, max_requests: int, window_seconds: float) -> "RateLimiter":
        """Limiter registered under ``name``; the first caller's limits win."""
        if cls._registry_lock is None:
            cls._registry_lock = asyncio.Lock()
        async with cls._registry_lock:
            limiter = cls._instances.get(name)
            if limiter is None:
                limiter = cls._instances[name] = cls(name, max_requests, window_seconds)
                logger.debug(f"Rate limit for {name}: {max_requests} requests per {window_seconds:g}s")
            return limiter

    @classmethod
    def reset_instances(cls) -> None:
        cls._instances.clear()
        cls._registry_lock = None

    def _evict(self, now: float) -> None:
        while self._sent and now - self._sent[0] > self.window_seconds:
            self._sent.popleft()

    def stats(self) -> RateLimitStats:
        self._evict(self._clock())
        return RateLimitStats(self.name, len(self._sent), self.max_requests, self.window_seconds)

    async def acquire(self) -> None:
        async with self._lock:
            current = self.stats()
            if current.saturated:
                logger.warning(f"Local rate limit reached ({current})")
                raise RateLimitError(f"Rate limit exceeded for {current}")
            self._sent.append(self._clock())


YAHOO_RATE_LIMIT = {"max_requests": 30, "window_seconds": 10}
MONEYCONTROL_RATE_LIMIT = {"max_requests": 20, "window_seconds": 10}
