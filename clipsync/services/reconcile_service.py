"""Reconciliation of local file events with the mapping store."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from clipsync.exceptions import SyncError
from clipsync.services.debounce import Debouncer

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from clipsync.models.mapping import MappingStore
    from clipsync.services.download_service import DownloadPipeline, DownloadReport

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_DEBOUNCE = 0.8


class ReconciliationWatcher:
    """Keep ``path -> id`` consistent with local deletes and renames.

    Deleted tracked files are re-fetched through a debounced refresh when the
    ``refresh_deleted`` preference is on, so a bulk delete costs one pipeline
    run instead of one per file.
    """

    def __init__(
        self,
        store: MappingStore,
        pipeline: DownloadPipeline,
        *,
        debounce_seconds: float = DEFAULT_REFRESH_DEBOUNCE,
        on_failure: Callable[[SyncError], object] | None = None,
    ) -> None:
        self.store = store
        self.pipeline = pipeline
        self._on_failure = on_failure
        self._debouncer: Debouncer[str] = Debouncer(self._refresh_batch, debounce_seconds)

    @property
    def refresh_enabled(self) -> bool:
        return self.store.preferences.refresh_deleted

    def on_delete(self, path: str) -> str | None:
        """Handle a local delete. Returns the record id if the path was tracked."""
        record_id = self.store.forget_path(path)
        queued: list[str] = []
        if record_id is not None:
            logger.info("Tracked file %s deleted (record %s)", path, record_id)
            if self.refresh_enabled:
                self.store.add_pending(record_id)
                queued.append(record_id)
        self._debouncer.request(queued)
        return record_id

    def on_rename(self, old_path: str, new_path: str) -> str | None:
        """Handle a local rename. Returns the record id if the path was tracked."""
        record_id = self.store.rename(old_path, new_path)
        if record_id is not None:
            logger.debug("Tracked file renamed %s -> %s", old_path, new_path)
        return record_id

    def request_refresh(self, record_ids: Iterable[str] = ()) -> None:
        """Schedule a debounced refresh of ``record_ids`` and the retry queue."""
        self._debouncer.request(record_ids)

    async def _refresh_batch(self, record_ids: list[str]) -> None:
        await self.refresh(record_ids)

    async def refresh(self, record_ids: Iterable[str] = ()) -> DownloadReport | None:
        """Re-download requested ids plus everything in the retry queue.

        Does nothing while the refresh feature is disabled or nothing is
        queued.
        """
        if not self.refresh_enabled:
            return None
        ids = list(dict.fromkeys([*record_ids, *self.store.pending_ids()]))
        if not ids:
            return None
        logger.info("Refreshing %d record(s)", len(ids))
        try:
            return await self.pipeline.download_all(ids)
        except SyncError as exc:
            logger.warning("Refresh aborted: %s", exc)
            if self._on_failure is not None:
                self._on_failure(exc)
            return None

    async def flush(self) -> None:
        await self._debouncer.flush()

    def cancel(self) -> None:
        self._debouncer.cancel()
