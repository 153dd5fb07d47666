"""Mapping store: durable record-id <-> local path state."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from clipsync.schemas.state import StoredState, SyncPreferences

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class MappingStore:
    """Single source of mutable sync state.

    Every mutating method calls the ``on_change`` hook once so the caller can
    schedule persistence. Mutations never suspend, which makes them safe under
    asyncio's cooperative model without further locking.

    Invariants:
    - a path maps to at most one record id;
    - ``checkpoint`` never decreases;
    - ``pending_retry`` keeps insertion order and holds each id once.
    """

    def __init__(
        self,
        state: StoredState | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        state = state or StoredState()
        self.on_change = on_change
        self.client_id = state.client_id
        self.preferences = state.preferences.model_copy()
        self._checkpoint = state.last_synced_epoch
        self._sync_in_progress = state.sync_in_progress
        self.last_sync_failed = state.last_sync_failed
        self._path_to_id: dict[str, str] = dict(state.path_ids)
        self._id_to_source_url: dict[str, str] = dict(state.source_urls)
        self._pending: dict[str, None] = dict.fromkeys(state.pending_retry)
        self._start_offsets: dict[str, int] = dict(state.start_offsets)

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

    def to_state(self) -> StoredState:
        """Build a serializable snapshot of the current state."""
        return StoredState(
            client_id=self.client_id,
            preferences=self.preferences.model_copy(),
            last_synced_epoch=self._checkpoint,
            sync_in_progress=self._sync_in_progress,
            last_sync_failed=self.last_sync_failed,
            path_ids=list(self._path_to_id.items()),
            source_urls=list(self._id_to_source_url.items()),
            pending_retry=list(self._pending),
            start_offsets=list(self._start_offsets.items()),
        )

    @property
    def checkpoint(self) -> int:
        return self._checkpoint

    @property
    def sync_in_progress(self) -> bool:
        return self._sync_in_progress

    def id_for_path(self, path: str) -> str | None:
        return self._path_to_id.get(path)

    def is_tracked(self, path: str) -> bool:
        return path in self._path_to_id

    def source_url_for_id(self, record_id: str) -> str | None:
        return self._id_to_source_url.get(record_id)

    def source_url_for_path(self, path: str) -> str | None:
        """Recover the playable source url of a tracked file, if known."""
        record_id = self._path_to_id.get(path)
        if record_id is None:
            return None
        return self._id_to_source_url.get(record_id)

    def tracked_paths(self) -> dict[str, str]:
        return dict(self._path_to_id)

    def pending_ids(self) -> list[str]:
        return list(self._pending)

    def start_offset(self, source_url: str) -> int:
        return self._start_offsets.get(source_url, 0)

    def begin_sync(self) -> None:
        self._sync_in_progress = True
        self._changed()

    def end_sync(self) -> None:
        self._sync_in_progress = False
        self._changed()

    def clear_stale_sync_flag(self) -> bool:
        """Reset a ``sync_in_progress`` flag left over from a crashed session.

        Returns True if the flag was set.
        """
        if not self._sync_in_progress:
            return False
        logger.warning("Found stale sync-in-progress flag, resetting")
        self._sync_in_progress = False
        self._changed()
        return True

    def mark_sync_result(self, *, failed: bool) -> None:
        self.last_sync_failed = failed
        self._changed()

    def advance_checkpoint(self, epoch: int) -> None:
        """Move the checkpoint forward; older epochs are ignored."""
        if epoch < self._checkpoint:
            logger.warning(
                "Ignoring checkpoint %d older than current checkpoint %d", epoch, self._checkpoint
            )
            return
        self._checkpoint = epoch
        self._changed()

    def record_written(self, path: str, record_id: str, source_url: str | None) -> None:
        """Register a successfully written record and clear its retry entry."""
        self._path_to_id[path] = record_id
        if source_url:
            self._id_to_source_url[record_id] = source_url
        self._pending.pop(record_id, None)
        self._changed()

    def add_pending(self, record_id: str) -> None:
        self._pending[record_id] = None
        self._changed()

    def discard_pending(self, record_id: str) -> None:
        if record_id in self._pending:
            del self._pending[record_id]
            self._changed()

    def rename(self, old_path: str, new_path: str) -> str | None:
        """Move a tracked path to ``new_path``, keeping its record id.

        Returns the record id, or None if ``old_path`` was not tracked.
        """
        record_id = self._path_to_id.pop(old_path, None)
        if record_id is None:
            return None
        self._path_to_id[new_path] = record_id
        self._changed()
        return record_id

    def forget_path(self, path: str) -> str | None:
        """Drop the mapping for a deleted path and return its record id."""
        record_id = self._path_to_id.pop(path, None)
        if record_id is not None:
            self._changed()
        return record_id

    def set_start_offset(self, source_url: str, seconds: int) -> None:
        self._start_offsets[source_url] = max(seconds, 0)
        self._changed()

    def update_preferences(self, **changes: object) -> SyncPreferences:
        """Apply validated preference changes and return the new preferences."""
        merged = self.preferences.model_dump() | changes
        self.preferences = SyncPreferences.model_validate(merged)
        self._changed()
        return self.preferences

    def ensure_client_id(self, factory: Callable[[], str]) -> str:
        if self.client_id is None:
            self.client_id = factory()
            self._changed()
        return self.client_id
