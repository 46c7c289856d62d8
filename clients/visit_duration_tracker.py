"""
Client side of visit duration reporting.

A share page viewer measures how long the page is actually visible and
reports it in whole-second deltas to ``POST /api/page/{slug}/visit-duration``.
Everything runs cooperatively on one asyncio loop: visibility events and the
periodic timer call into the tracker, and each flush is fire-and-forget.
"""
import asyncio
import time
from typing import Awaitable, Callable, Optional

import httpx

from utils.logger_factory import new_logger

DEFAULT_FLUSH_INTERVAL_SECONDS = 60.0
MIN_REPORT_SECONDS = 1

Reporter = Callable[[int], Awaitable[None]]


class HttpDurationReporter:
    """Posts one duration delta; raises on transport errors and non-2xx answers."""

    def __init__(self, client: httpx.AsyncClient, slug: str,
                 path_template: str = "/api/page/{slug}/visit-duration"):
        self.client = client
        self.path = path_template.format(slug=slug)

    async def __call__(self, seconds: int) -> None:
        response = await self.client.post(self.path, json={"duration": seconds})
        response.raise_for_status()


class VisitDurationTracker:
    """
    Tracks visible wall-clock time for one page view.

    Hiding the page or unloading it flushes the current interval and stops the
    clock; showing it again starts a fresh interval, so hidden time is never
    counted. A periodic tick flushes without stopping the clock. After a
    successful flush the marker advances by the seconds reported; a failed
    flush leaves it in place so the next flush reports the missed time.
    """

    def __init__(self, report: Reporter, interval_seconds: float = DEFAULT_FLUSH_INTERVAL_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self._report = report
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._visible = False
        self._last_recorded: Optional[float] = None
        # Bumped whenever a new visible interval starts
        self._interval_id = 0
        self._flush_lock = asyncio.Lock()
        self._timer: Optional[asyncio.Task] = None

    @property
    def visible(self) -> bool:
        return self._visible

    def start(self) -> None:
        """Begin a visible interval from now (page load, or page shown again)."""
        self._visible = True
        self._last_recorded = self._clock()
        self._interval_id += 1

    async def flush(self, stop_clock: bool = False) -> int:
        """Report the visible seconds since the last marker; returns the seconds sent."""
        log = new_logger("flush_visit_duration")

        async with self._flush_lock:
            if not self._visible:
                return 0
            interval_id = self._interval_id
            seconds = int(self._clock() - self._last_recorded)
            if stop_clock:
                self._visible = False
            if seconds < MIN_REPORT_SECONDS:
                return 0

            try:
                await self._report(seconds)
            except Exception as e:
                log.warning(f"Failed to record visit duration of {seconds}s: {e}")
                return 0

            if interval_id == self._interval_id:
                self._last_recorded += seconds
            return seconds

    async def visibility_changed(self, hidden: bool) -> None:
        if hidden:
            await self.flush(stop_clock=True)
        elif not self._visible:
            self.start()

    async def tick(self) -> int:
        return await self.flush(stop_clock=False)

    async def run(self) -> None:
        """Periodic timer loop; cancelled by stop_timer()."""
        while True:
            await asyncio.sleep(self.interval_seconds)
            if self._visible:
                await self.tick()

    def start_timer(self) -> None:
        if self._timer is None or self._timer.done():
            self._timer = asyncio.create_task(self.run())

    def stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def unload(self) -> int:
        """Page unload / unmount: clear the timer and flush what is left (best effort)."""
        self.stop_timer()
        return await self.flush(stop_clock=True)
