"""Token-interval rate limiter for upload endpoints."""

from __future__ import annotations

import asyncio
import time


class AsyncRateLimiter:
    """Coroutine-safe rate limiter spacing calls evenly across a minute.

    Args:
        requests_per_minute: Maximum requests allowed per minute.
            ``None`` or a non-positive value disables pacing.
    """

    def __init__(self, requests_per_minute: int | None = None) -> None:
        if requests_per_minute and requests_per_minute > 0:
            self._interval = 60.0 / requests_per_minute
        else:
            self._interval = 0.0
        self._last_request_time: float | None = None
        self._lock = asyncio.Lock()

    @property
    def interval(self) -> float:
        return self._interval

    async def wait(self) -> None:
        """Sleep until the next request is allowed."""
        if not self._interval:
            return
        async with self._lock:
            now = time.monotonic()
            if self._last_request_time is not None:
                elapsed = now - self._last_request_time
                if elapsed < self._interval:
                    await asyncio.sleep(self._interval - elapsed)
            self._last_request_time = time.monotonic()
