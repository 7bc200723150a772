"""Fixed-window admission control per client address."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from fastapi import HTTPException, Request, status

logger = logging.getLogger(__name__)

RATE_LIMITED_MESSAGE = "Too many requests from this IP"


@dataclass
class _Window:
    started_at: float
    hits: int


class FixedWindowRateLimiter:
    """Allow ``max_requests`` per key in each ``window_seconds`` window.

    State is process-local and only touched from the event loop.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}

    def hit(self, key: str) -> bool:
        """Count one request for ``key``; False once the quota is spent."""
        now = self._clock()
        window = self._windows.get(key)
        if window is None or now - window.started_at >= self.window_seconds:
            self._prune(now)
            window = self._windows[key] = _Window(started_at=now, hits=0)
        window.hits += 1
        return window.hits <= self.max_requests

    def reset(self) -> None:
        self._windows.clear()

    def _prune(self, now: float) -> None:
        expired = [k for k, w in self._windows.items() if now - w.started_at >= self.window_seconds]
        for k in expired:
            del self._windows[k]


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency: reject before the handler runs when over quota."""
    limiter: FixedWindowRateLimiter = request.app.state.rate_limiter
    key = client_address(request)
    if not limiter.hit(key):
        logger.warning("Rate limit exceeded for %s on %s", key, request.url.path)
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=RATE_LIMITED_MESSAGE)
