"""Fixed politeness delay between outbound requests of one stage."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

Sleep = Callable[[float], Awaitable[None]]


class Throttle:
    """
    Enforce a minimum gap between consecutive calls to wait().

    The first wait() returns immediately. Later calls sleep for whatever is
    left of `delay_seconds` since the previous call returned.

    Usage:
        throttle = Throttle(1.5)
        for url in urls:
            await throttle.wait()
            html = await fetcher.fetch_html(url)
    """

    def __init__(
        self,
        delay_seconds: float,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.delay_seconds = max(delay_seconds, 0.0)
        self._sleep = sleep
        self._clock = clock
        self._last: float | None = None
        self.waits = 0

    async def wait(self) -> None:
        if self._last is not None and self.delay_seconds > 0:
            remaining = self.delay_seconds - (self._clock() - self._last)
            if remaining > 0:
                self.waits += 1
                await self._sleep(remaining)
        self._last = self._clock()

    def with_delay(self, delay_seconds: float) -> "Throttle":
        """A fresh throttle sharing this one's sleep and clock."""
        return Throttle(delay_seconds, sleep=self._sleep, clock=self._clock)
