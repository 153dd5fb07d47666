"""User notification: transient status messages and one-shot notices.

Hosts implement :class:`Notifier` to surface messages in their own UI; the
sync engine only ever talks to a :class:`Reporter`.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

DEFAULT_STATUS_SECONDS = 4.0


@runtime_checkable
class Notifier(Protocol):
    """Narrow UI surface used by the sync engine."""

    def status(self, message: str, timeout: float = 0, force: bool = False) -> None:
        """Show a transient status-line message for ``timeout`` seconds."""
        ...

    def notice(self, message: str) -> None:
        """Show a one-shot notice the user has to see."""
        ...


class StatusLine:
    """Queue of auto-expiring status messages.

    Messages are shown one after another; each stays current for its own
    timeout (a default when zero). A forced message drops everything queued
    and is shown immediately.
    """

    def __init__(self, default_seconds: float = DEFAULT_STATUS_SECONDS) -> None:
        self._default_seconds = default_seconds
        self._queue: deque[tuple[str, float]] = deque()
        self._current: str | None = None
        self._expires_at = 0.0

    def display_message(self, message: str, timeout: float = 0, force: bool = False) -> None:
        seconds = timeout if timeout > 0 else self._default_seconds
        if force:
            self._queue.clear()
            self._show(message, seconds)
            return
        self._queue.append((message, seconds))

    def _show(self, message: str, seconds: float) -> None:
        self._current = message
        self._expires_at = time.monotonic() + seconds

    def current(self) -> str | None:
        """Return the message to display now, advancing the queue as needed."""
        now = time.monotonic()
        if self._current is not None and now < self._expires_at:
            return self._current
        if self._queue:
            message, seconds = self._queue.popleft()
            self._show(message, seconds)
            return message
        self._current = None
        return None


class LoggingNotifier:
    """Notifier that keeps a status line and logs every message."""

    def __init__(self, status_line: StatusLine | None = None) -> None:
        self.status_line = status_line or StatusLine()

    def status(self, message: str, timeout: float = 0, force: bool = False) -> None:
        self.status_line.display_message(message.lower(), timeout, force)
        logger.info("%s", message)

    def notice(self, message: str) -> None:
        logger.warning("%s", message)


class Reporter:
    """Translate engine events into status messages and notices."""

    def __init__(self, notifier: Notifier) -> None:
        self.notifier = notifier

    def report(
        self, message: str, *, show: bool = False, timeout: float = 0, force: bool = False
    ) -> None:
        """Always update the status line; also raise a notice when ``show``."""
        if show:
            self.notifier.notice(message)
        self.notifier.status(message, timeout, force)

    def progress(self, index: int, total: int) -> None:
        self.report(f"Exporting ReClipped data ({index} / {total}) ...")

    def error(self, message: str) -> None:
        self.report(message, show=True, timeout=4, force=True)
