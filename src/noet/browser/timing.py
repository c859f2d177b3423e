"""Human pacing model.

Every navigation and interaction is followed by one of these waits so the
session's timing does not look mechanical. Delay computation is pure
(``jittered_delay``, ``typing_delay``); ``HumanTiming`` layers named presets
on top and performs the actual suspension.
"""

from __future__ import annotations

import asyncio
import random
import time
from typing import Awaitable, Callable

# Named presets (ms)
PAGE_SETTLE_MS = (1500, 3500)
SPA_RENDER_MS = (500, 1500)
EDITOR_INIT_MS = (2000, 4000)
READING_PAUSE_MS = (300, 1000)
ACTION_PAUSE_MS = (300, 800)
POLL_INTERVAL_MS = (100, 250)

# Typing: ~80ms per character, +/- 20%
TYPING_MS_PER_CHAR = 80
TYPING_VARIATION = (0.8, 1.2)

SleepFn = Callable[[float], Awaitable[None]]


def jittered_delay(min_ms: float, max_ms: float, *, rng: random.Random | None = None) -> float:
    """Return a delay in seconds drawn uniformly from ``[min_ms, max_ms]``."""
    if min_ms < 0 or max_ms < min_ms:
        raise ValueError(f"invalid delay bounds: [{min_ms}, {max_ms}]")
    r = rng or random
    return r.uniform(min_ms, max_ms) / 1000


def typing_delay(length: int, *, rng: random.Random | None = None) -> float:
    """Return how long a human would take to type *length* characters, in seconds."""
    if length <= 0:
        return 0.0
    r = rng or random
    return length * TYPING_MS_PER_CHAR * r.uniform(*TYPING_VARIATION) / 1000


class HumanTiming:
    """Suspends the current flow for human-looking durations.

    Args:
        scale: Multiplier applied to every delay; ``0`` disables waiting.
        typing_max_chars: Longest text charged at typing speed; longer
            values wait as if this many characters were typed. ``0``
            means no cap.
        sleep: Awaitable sleep function (``asyncio.sleep`` by default).
        rng: Optional seeded ``random.Random`` for reproducible delays.
    """

    def __init__(
        self,
        scale: float = 1.0,
        *,
        typing_max_chars: int = 0,
        sleep: SleepFn | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._scale = max(0.0, scale)
        self._typing_max_chars = max(0, typing_max_chars)
        self._sleep = sleep or asyncio.sleep
        self._rng = rng

    @property
    def scale(self) -> float:
        return self._scale

    async def pause(self, min_ms: float, max_ms: float) -> float:
        """Sleep for a jittered duration and return it (seconds)."""
        delay = jittered_delay(min_ms, max_ms, rng=self._rng) * self._scale
        await self._sleep(delay)
        return delay

    async def page_settle(self) -> float:
        """Wait after a page load, before the first interaction."""
        return await self.pause(*PAGE_SETTLE_MS)

    async def spa_render(self) -> float:
        """Extra wait for client-rendered lists."""
        return await self.pause(*SPA_RENDER_MS)

    async def editor_init(self) -> float:
        return await self.pause(*EDITOR_INIT_MS)

    async def reading_pause(self) -> float:
        return await self.pause(*READING_PAUSE_MS)

    async def action_pause(self) -> float:
        """Short pause between two interactions."""
        return await self.pause(*ACTION_PAUSE_MS)

    async def typing(self, length: int) -> float:
        """Wait as long as typing *length* characters would take."""
        if self._typing_max_chars:
            length = min(length, self._typing_max_chars)
        delay = typing_delay(length, rng=self._rng) * self._scale
        await self._sleep(delay)
        return delay

    def poll_interval(self) -> float:
        """Seconds between two DOM probe polls."""
        return jittered_delay(*POLL_INTERVAL_MS, rng=self._rng) * self._scale

    async def sleep(self, seconds: float) -> None:
        await self._sleep(seconds)


class RateLimiter:
    """Enforce a minimum spacing between consecutive browser commands.

    The first call never waits.

    Args:
        min_interval: Minimum seconds between two ``wait()`` returns.
    """

    def __init__(
        self,
        min_interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFn | None = None,
    ) -> None:
        self._min_interval = max(0.0, min_interval)
        self._clock = clock
        self._sleep = sleep or asyncio.sleep
        self._last: float | None = None
        self._lock = asyncio.Lock()

    @property
    def min_interval(self) -> float:
        return self._min_interval

    async def wait(self) -> float:
        """Sleep until the interval has elapsed; return the time waited."""
        async with self._lock:
            waited = 0.0
            now = self._clock()
            if self._last is not None:
                remaining = self._min_interval - (now - self._last)
                if remaining > 0:
                    await self._sleep(remaining)
                    waited = remaining
            self._last = self._clock()
            return waited
