"""
Backoff policy for retrying a whole extraction
"""

from typing import Awaitable, Callable, Optional
import asyncio

from core.config import settings


class BackoffPolicy:
    """
    Maps a failed attempt to the delay before the next one.

    Delay grows linearly: attempt index (1-based) x base delay. The sleep
    function is injectable so tests (and other schedulers) can replace it.
    """

    def __init__(
        self,
        base_delay: Optional[float] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None
    ):
        self.base_delay = settings.RETRY_BASE_DELAY_SECONDS if base_delay is None else base_delay
        self._sleep = sleep or asyncio.sleep

    def delay_for(self, attempt: int) -> float:
        """Delay after failed attempt number ``attempt`` (1-based)"""
        return max(attempt, 0) * self.base_delay

    async def wait(self, attempt: int) -> float:
        delay = self.delay_for(attempt)
        if delay > 0:
            await self._sleep(delay)
        return delay
