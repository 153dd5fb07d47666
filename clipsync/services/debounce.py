"""Debounce with argument coalescing."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Hashable, Iterable

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="Hashable")


class Debouncer(Generic[T]):
    """Collect items and run a handler once per quiet period.

    Every ``request`` merges its items into a pending ordered set and restarts
    the quiescence window. When the window elapses without new requests, the
    handler runs exactly once with the merged items. Requests made while the
    handler is running start a new window.

    Must be used from within a running event loop.
    """

    def __init__(self, handler: Callable[[list[T]], Awaitable[None]], wait: float) -> None:
        if wait < 0:
            msg = f"wait must be >= 0, got {wait}"
            raise ValueError(msg)
        self._handler = handler
        self._wait = wait
        self._items: dict[T, None] = {}
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def request(self, items: Iterable[T] = ()) -> None:
        for item in items:
            self._items[item] = None
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._wait, self._fire)

    def _fire(self) -> None:
        self._timer = None
        items = list(self._items)
        self._items.clear()
        task = asyncio.get_running_loop().create_task(self._run(items))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, items: list[T]) -> None:
        try:
            await self._handler(items)
        except Exception:
            logger.exception("Debounced handler failed")

    async def flush(self) -> None:
        """Fire a pending request immediately and wait for running handlers."""
        if self._timer is not None:
            self._timer.cancel()
            self._fire()
        if self._tasks:
            await asyncio.gather(*self._tasks)

    def cancel(self) -> None:
        """Drop a pending request without running the handler."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._items.clear()
