"""Two-sided countdown clock kept in step with server-reported times."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from .config import SETTINGS
from .rules import Color

log = logging.getLogger("clock")


@dataclass(frozen=True)
class ClockPair:
    white_ms: int
    black_ms: int


class ClockSynchronizer:
    """Remaining time for both sides.

    The server is the source of truth: anchor() overwrites both clocks on every
    full or delta event. Between updates tick() only ever lowers the clock of
    the side to move, so drift is bounded by the interval between two updates.
    """

    __slots__ = ("_remaining", "_active", "anchored_at")

    def __init__(self) -> None:
        self._remaining: dict[str, float] = {"white": 0, "black": 0}
        self._active: Optional[Color] = None
        self.anchored_at: float = 0.0

    def anchor(self, white_ms: float, black_ms: float) -> None:
        self._remaining["white"] = max(0, white_ms)
        self._remaining["black"] = max(0, black_ms)
        self.anchored_at = time.monotonic()

    def set_active(self, color: Optional[Color]) -> None:
        """Set the side whose clock runs; None stops local ticking (game not in play)."""
        self._active = color

    @property
    def active(self) -> Optional[Color]:
        return self._active

    def tick(self, delta_ms: float) -> None:
        if self._active is None or delta_ms <= 0:
            return
        self._remaining[self._active] = max(0, self._remaining[self._active] - delta_ms)

    def remaining(self, color: Color) -> float:
        return self._remaining[color]

    def snapshot(self) -> ClockPair:
        return ClockPair(white_ms=int(self._remaining["white"]), black_ms=int(self._remaining["black"]))


class ClockTicker:
    """Periodic task feeding measured elapsed time into a ClockSynchronizer.

    start() and stop() are idempotent; the task only exists while started.
    """

    def __init__(self, clock: ClockSynchronizer, period_ms: int | None = None):
        self._clock = clock
        self._period_s = (period_ms or SETTINGS.clock_tick_ms) / 1000.0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        log.debug("Clock ticker started (period %.3fs)", self._period_s)

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            log.debug("Clock ticker stopped")

    async def _run(self) -> None:
        last = time.monotonic()
        while True:
            await asyncio.sleep(self._period_s)
            now = time.monotonic()
            # time before the latest anchor is already reflected in the server value
            since = max(last, self._clock.anchored_at)
            self._clock.tick((now - since) * 1000.0)
            last = now


def format_clock(ms: float) -> str:
    """Render remaining time as m:ss, or s.t (tenths) below 20 seconds."""
    ms = max(0, int(ms))
    total_seconds = ms // 1000
    if ms < 20000:
        return f"{total_seconds}.{(ms % 1000) // 100}"
    return f"{total_seconds // 60}:{total_seconds % 60:02d}"
