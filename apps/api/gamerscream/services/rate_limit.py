"""Per-client attempt counters for the PIN and admin endpoints."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable

logger = logging.getLogger(__name__)


@dataclass
class _Attempts:
    count: int
    last_attempt: float


class RateLimiter:
    """Fixed counter per key that resets once the window has passed since the last attempt.

    Not a true sliding window; "roughly ``limit`` per window per client" is all
    the endpoints need.
    """

    def __init__(self, limit: int, window_seconds: float, clock: Callable[[], float] = time.time) -> None:
        self._limit = limit
        self._window = window_seconds
        self._clock = clock
        self._entries: Dict[str, _Attempts] = {}

    def allow(self, key: str) -> bool:
        now = self._clock()
        entry = self._entries.get(key)
        if entry is None or now - entry.last_attempt > self._window:
            self._entries[key] = _Attempts(count=1, last_attempt=now)
            return True
        if entry.count >= self._limit:
            return False
        entry.count += 1
        entry.last_attempt = now
        return True

    def sweep(self) -> int:
        """Drop entries whose last attempt is older than the window."""

        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now - entry.last_attempt > self._window]
        for key in expired:
            self._entries.pop(key, None)
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


async def sweep_forever(limiters: Iterable[RateLimiter], interval_seconds: float) -> None:
    """Periodically sweep every limiter until cancelled."""

    limiters = list(limiters)
    while True:
        await asyncio.sleep(interval_seconds)
        removed = sum(limiter.sweep() for limiter in limiters)
        if removed:
            logger.debug("Swept %d stale rate limit entries", removed)
