"""
BioNova-X - Rate Limiter
=========================
Process-wide sliding-window limiter keyed by client IP.  Every ``/api``
route shares one budget (default 100 requests per 15 minutes).

The server is a single asyncio process, so plain dict/deque state is
enough; nothing here awaits.  IPs with no hit inside the window are
swept at most once per window, so the map only holds recent clients.
"""

from __future__ import annotations

import math
import time
from collections import deque
from typing import Callable, NamedTuple

from bionova.config.settings import settings
from bionova.src.utils.logger import get_logger

logger = get_logger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again after 15 minutes."


class RateLimitDecision(NamedTuple):
    allowed: bool
    remaining: int
    retry_after: int


class SlidingWindowRateLimiter:
    """
    Allow at most ``max_requests`` per ``window_seconds`` for each key.

    Parameters
    ----------
    max_requests, window_seconds
        Budget and window.  Default to the ``RATE_LIMIT_*`` settings.
    clock
        Monotonic time source, injectable for tests.
    """

    __slots__ = ("max_requests", "window_seconds", "_clock", "_hits", "_last_sweep")

    def __init__(self, max_requests: int | None = None, window_seconds: float | None = None, clock: Callable[[], float] = time.monotonic) -> None:
        self.max_requests = max_requests or settings.RATE_LIMIT_MAX_REQUESTS
        self.window_seconds = window_seconds or settings.RATE_LIMIT_WINDOW_SECONDS
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._last_sweep = clock()


    @property
    def tracked_keys(self) -> int:
        return len(self._hits)


    def hit(self, key: str) -> RateLimitDecision:
        """Record a request for *key* unless it is over budget."""
        now = self._clock()
        window_start = now - self.window_seconds

        if now - self._last_sweep >= self.window_seconds:
            self._sweep(window_start)
            self._last_sweep = now

        hits = self._hits.setdefault(key, deque())
        while hits and hits[0] <= window_start:
            hits.popleft()

        if len(hits) >= self.max_requests:
            retry_after = max(1, math.ceil(hits[0] + self.window_seconds - now))
            logger.warning("[RATE] %s over budget (%d/%d); retry in %ds.", key, len(hits), self.max_requests, retry_after)
            return RateLimitDecision(False, 0, retry_after)

        hits.append(now)
        return RateLimitDecision(True, self.max_requests - len(hits), 0)


    def reset(self) -> None:
        self._hits.clear()


    def _sweep(self, window_start: float) -> None:
        """Forget keys whose newest hit has left the window."""
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= window_start]
        for key in stale:
            del self._hits[key]
        if stale:
            logger.debug("[RATE] Swept %d idle client(s); tracking %d.", len(stale), len(self._hits))
