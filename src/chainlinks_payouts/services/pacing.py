"""Pacing for sequential payout batches."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from chainlinks_payouts.core.settings import settings


@dataclass
class PayoutPacer:
    """Fixed-interval limiter: at most one payout starts per ``interval_seconds``.

    The first ``acquire`` returns immediately; each later one waits until the
    interval has elapsed since the previous acquisition.
    """

    interval_seconds: float = field(default_factory=lambda: settings.payout_interval_seconds)
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    _last_acquired: float | None = field(default=None, init=False, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds must not be negative")

    async def acquire(self) -> float:
        """Wait for the next slot and return how long we waited."""
        async with self._lock:
            waited = 0.0
            if self._last_acquired is not None:
                remaining = self._last_acquired + self.interval_seconds - self.clock()
                if remaining > 0:
                    await self.sleep(remaining)
                    waited = remaining
            self._last_acquired = self.clock()
            return waited

    def reset(self) -> None:
        """Forget the previous acquisition so the next one is immediate."""
        self._last_acquired = None
