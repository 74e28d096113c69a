"""Clock implementations satisfying the ``Clock`` collaborator protocol.

``SystemClock`` reads wall-clock seconds and schedules callbacks on the
running asyncio loop. ``ManualClock`` only moves when told to, which lets
tests and simulations walk through cooldown and mute windows exactly.
"""

from __future__ import annotations

import asyncio
import heapq
import time
from typing import Callable

from chatguard.util.logger import get_logger

logger = get_logger("clock")

CancelHandle = Callable[[], None]


class SystemClock:
    """Wall clock backed by ``time.time`` and ``loop.call_later``."""

    def now(self) -> float:
        return time.time()

    def after(self, ms: float, callback: Callable[[], None]) -> CancelHandle:
        loop = asyncio.get_running_loop()
        handle = loop.call_later(ms / 1000.0, callback)
        return handle.cancel


class ManualClock:
    """
    Deterministic clock advanced explicitly through :meth:`advance`.

    Scheduled callbacks fire in due order while advancing; a callback due
    exactly at the new time fires. Cancelled callbacks are skipped.

    Attributes:
        current (float): The clock's current time in seconds.
    """

    def __init__(self, start: float = 0.0) -> None:
        self.current: float = start
        self._timers: list[tuple[float, int, Callable[[], None]]] = []
        self._cancelled: set[int] = set()
        self._counter: int = 0

    def now(self) -> float:
        return self.current

    def after(self, ms: float, callback: Callable[[], None]) -> CancelHandle:
        self._counter += 1
        timer_id = self._counter
        heapq.heappush(self._timers, (self.current + ms / 1000.0, timer_id, callback))

        def cancel() -> None:
            self._cancelled.add(timer_id)

        return cancel

    @property
    def pending(self) -> int:
        """Number of scheduled callbacks that have neither fired nor been cancelled."""
        return sum(1 for _, timer_id, _ in self._timers if timer_id not in self._cancelled)

    def advance(self, seconds: float) -> None:
        """Move the clock forward by ``seconds`` and fire every callback that came due."""
        target = self.current + seconds
        while self._timers and self._timers[0][0] <= target:
            due, timer_id, callback = heapq.heappop(self._timers)
            if timer_id in self._cancelled:
                self._cancelled.discard(timer_id)
                continue
            self.current = due
            try:
                callback()
            except Exception:
                logger.exception("Timer callback %d raised", timer_id)
        self.current = target
