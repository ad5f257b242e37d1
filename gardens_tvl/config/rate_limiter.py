"""
Async rate limiter for RPC requests.

Spaces requests at a fixed minimum interval and, after a rate-limit response,
holds every caller back with exponential backoff (1s, 2s, 4s... up to
max_backoff). One limiter per chain run; never shared across chains.
"""

import asyncio
import logging
import time

logger = logging.getLogger(__name__)


class RateLimiter:
    def __init__(self, calls_per_second: float = 10, max_backoff: float = 30.0):
        if calls_per_second <= 0:
            raise ValueError("calls_per_second must be positive")
        self.min_interval = 1.0 / calls_per_second
        self.max_backoff = max_backoff
        self.last_call = 0.0
        self.backoff_until = 0.0
        self.consecutive_errors = 0
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        """Wait for the next free slot, honouring any active backoff."""
        async with self._lock:
            now = time.monotonic()
            delay = max(self.backoff_until - now, self.min_interval - (now - self.last_call), 0.0)
            if delay > 0:
                await asyncio.sleep(delay)
            self.last_call = time.monotonic()

    def report_rate_limited(self) -> None:
        self.consecutive_errors += 1
        backoff = min(2 ** (self.consecutive_errors - 1), self.max_backoff)
        self.backoff_until = time.monotonic() + backoff
        logger.warning("Rate limit hit (%dx), backing off %ss", self.consecutive_errors, backoff)

    def report_success(self) -> None:
        if self.consecutive_errors:
            self.consecutive_errors = 0
            self.backoff_until = 0.0
