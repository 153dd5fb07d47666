"""Fixed-interval automatic sync scheduler."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class Scheduler:
    """Invoke a callback every ``minutes`` minutes.

    Each tick starts the callback in its own task, so a slow sync never
    delays the next tick and reconfiguring never cancels a sync in flight;
    overlapping cycles are rejected by the orchestrator's guard.

    Args:
        callback: Coroutine function run on every tick.
        unit_seconds: Length of one configured unit (60 for minutes).
    """

    def __init__(
        self, callback: Callable[[], Awaitable[object]], *, unit_seconds: float = 60.0
    ) -> None:
        if unit_seconds <= 0:
            msg = f"unit_seconds must be > 0, got {unit_seconds}"
            raise ValueError(msg)
        self._callback = callback
        self._unit_seconds = unit_seconds
        self._timer: asyncio.Task[None] | None = None
        self._runs: set[asyncio.Task[None]] = set()
        self.minutes = 0

    @property
    def is_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def configure(self, minutes: int) -> None:
        """Replace the current timer; ``0`` disables automatic sync.

        Cancelling the old timer and starting the new one happen without a
        suspension point in between.
        """
        if minutes < 0:
            msg = f"minutes must be >= 0, got {minutes}"
            raise ValueError(msg)
        self.cancel()
        self.minutes = minutes
        if not minutes:
            logger.info("Automatic sync disabled")
            return
        interval = minutes * self._unit_seconds
        logger.info("Automatic sync every %s second(s)", interval)
        self._timer = asyncio.get_running_loop().create_task(self._tick_forever(interval))

    async def _tick_forever(self, interval: float) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time() + interval
        while True:
            await asyncio.sleep(max(next_at - loop.time(), 0))
            next_at += interval
            run = loop.create_task(self._run_once())
            self._runs.add(run)
            run.add_done_callback(self._runs.discard)

    async def _run_once(self) -> None:
        try:
            await self._callback()
        except Exception:
            logger.exception("Scheduled sync failed")

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def stop(self) -> None:
        """Cancel the timer and wait for ticks already started."""
        timer = self._timer
        self.cancel()
        if timer is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await timer
        if self._runs:
            await asyncio.gather(*self._runs)
