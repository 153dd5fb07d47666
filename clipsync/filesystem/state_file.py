"""JSON state file reader/writer."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import TYPE_CHECKING

from pydantic import ValidationError

from clipsync.schemas.state import StoredState

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

logger = logging.getLogger(__name__)


def load_state(path: Path) -> StoredState:
    """Load persisted state, returning defaults when the file does not exist.

    Raises ValueError if the file exists but does not hold valid state.
    """
    if not path.exists():
        return StoredState()
    try:
        return StoredState.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as exc:
        msg = f"Invalid state file {path}: {exc.error_count()} error(s)"
        raise ValueError(msg) from exc


def save_state(path: Path, state: StoredState) -> None:
    """Atomically replace the state file with ``state``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_text(state.model_dump_json(indent=2), encoding="utf-8")
    os.replace(tmp_path, path)


class StateWriter:
    """Fire-and-forget persistence of the latest state snapshot.

    ``request_save`` never suspends. Requests made while a write is running
    are coalesced: the writer task loops until no newer request is pending,
    always serializing the snapshot taken at write time.
    """

    def __init__(self, path: Path, snapshot: Callable[[], StoredState]) -> None:
        self.path = path
        self._snapshot = snapshot
        self._dirty = False
        self._task: asyncio.Task[None] | None = None

    def request_save(self) -> None:
        self._dirty = True
        if self._task is not None and not self._task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet (startup code): write synchronously.
            self._dirty = False
            save_state(self.path, self._snapshot())
            return
        self._task = loop.create_task(self._drain())

    async def _drain(self) -> None:
        while self._dirty:
            self._dirty = False
            state = self._snapshot()
            try:
                await asyncio.to_thread(save_state, self.path, state)
            except OSError:
                logger.exception("Failed to persist state to %s", self.path)

    async def flush(self) -> None:
        """Wait until every requested save has been written."""
        while self._task is not None and not self._task.done():
            await self._task
        if self._dirty:
            self._dirty = False
            await asyncio.to_thread(save_state, self.path, self._snapshot())
