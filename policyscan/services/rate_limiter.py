"""
Sliding-window throttle for outbound model calls.

One limiter is shared by every pipeline run in the process (the composition
root builds it and hands it to the invoker), so the timestamp window is
guarded by an asyncio lock.
"""

import asyncio
import time
from typing import Awaitable, Callable, Dict, List, Optional

from policyscan.config import settings
from policyscan.utils.logging_config import StructuredLogger, metrics

logger = StructuredLogger(__name__)


class SlidingWindowRateLimiter:
    """
    Allows at most `max_requests` model calls in any `window_seconds` span.

    When the window is saturated the caller sleeps until the oldest
    timestamp ages out, then its own call is recorded.
    """

    def __init__(
        self,
        max_requests: Optional[int] = None,
        window_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_requests = max_requests or settings.llm_rate_limit_requests
        self.window_seconds = window_seconds or settings.llm_rate_limit_window
        self._clock = clock
        self._sleep = sleep
        self._requests: List[float] = []
        self._lock = asyncio.Lock()

    def _clean_old_entries(self, now: float):
        """Remove timestamps that have left the window."""
        self._requests = [ts for ts in self._requests if now - ts < self.window_seconds]

    def get_retry_after(self, now: Optional[float] = None) -> float:
        """Seconds until a slot frees up (0 if one is free now)."""
        now = self._clock() if now is None else now
        self._clean_old_entries(now)
        if len(self._requests) < self.max_requests:
            return 0.0
        oldest = self._requests[0]
        return max(0.0, self.window_seconds - (now - oldest))

    async def wait_if_needed(self) -> float:
        """
        Block until a call is allowed, then record it.

        Returns:
            Seconds spent waiting (0.0 when the window had room)
        """
        async with self._lock:
            now = self._clock()
            self._clean_old_entries(now)
            waited = 0.0

            while len(self._requests) >= self.max_requests:
                wait_time = self.window_seconds - (now - self._requests[0])
                logger.info(
                    "Rate limit reached, waiting",
                    wait_seconds=round(wait_time, 3),
                    max_requests=self.max_requests,
                    window_seconds=self.window_seconds,
                )
                metrics.increment("rate_limiter.waits")
                await self._sleep(wait_time)
                waited += wait_time
                # Never trust a clock that did not move across the sleep
                now = max(self._clock(), now + wait_time)
                self._clean_old_entries(now)

            self._requests.append(now)
            return waited

    def get_stats(self) -> Dict[str, float]:
        now = self._clock()
        self._clean_old_entries(now)
        return {
            "max_requests": self.max_requests,
            "window_seconds": self.window_seconds,
            "current_requests": len(self._requests),
            "remaining": max(0, self.max_requests - len(self._requests)),
        }

    def reset(self):
        self._requests.clear()
