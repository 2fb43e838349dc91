"""Key-rotated rate limiting for explorer API calls."""

import time
import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence
import structlog

logger = structlog.get_logger(__name__)


class RotationCursor:
    """Round-robin position over a fixed-size credential pool."""

    def __init__(self, size: int):
        self.size = max(1, size)
        self.position = 0

    def advance(self) -> int:
        """Return the current index and move to the next one."""
        index = self.position
        self.position = (self.position + 1) % self.size
        return index


class KeyRotatedRateLimiter:
    """
    Hands out API keys round-robin while keeping per-key call spacing.

    Each key may be used at most once every ``min_spacing`` seconds, so a pool
    of N keys gives N times the throughput of a single key. ``acquire`` never
    fails; it only suspends the caller until the selected key is free again.
    """

    def __init__(self,
                 api_keys: Sequence[str],
                 min_spacing: float,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        """
        Args:
            api_keys: Credential pool; an empty pool means keyless access
            min_spacing: Minimum seconds between two uses of the same key
            clock: Monotonic time source
            sleep: Coroutine used to wait
        """
        self.api_keys: List[str] = list(api_keys) or [""]
        self.min_spacing = min_spacing
        self.cursor = RotationCursor(len(self.api_keys))
        self._last_used: List[Optional[float]] = [None] * len(self.api_keys)
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()

        logger.info("Rate limiter initialized",
                   keys=len(api_keys),
                   min_spacing=min_spacing)

    async def acquire(self) -> str:
        """Reserve the next key in rotation and wait until it may be used."""
        async with self._lock:
            index = self.cursor.advance()
            now = self._clock()
            last = self._last_used[index]
            wait = 0.0 if last is None else max(0.0, last + self.min_spacing - now)
            # Reserve the slot before releasing the lock
            self._last_used[index] = now + wait

        if wait > 0:
            logger.debug("Waiting for API key slot", key_index=index, wait=round(wait, 3))
            await self._sleep(wait)

        return self.api_keys[index]

    @property
    def effective_rate(self) -> float:
        """Calls per second across the whole pool."""
        if self.min_spacing <= 0:
            return float("inf")
        return len(self.api_keys) / self.min_spacing
