"""Sync orchestrator: one incremental export cycle from listing to ack."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from clipsync.exceptions import RemoteError, SyncError, TargetDirectoryError

if TYPE_CHECKING:
    from clipsync.filesystem.storage import Storage
    from clipsync.models.mapping import MappingStore
    from clipsync.remote.base import RemoteService
    from clipsync.services.download_service import DownloadPipeline, DownloadReport
    from clipsync.services.notify_service import Reporter

logger = logging.getLogger(__name__)


class SyncStatus(StrEnum):
    """Terminal state of a sync cycle."""

    ALREADY_RUNNING = "already_running"
    UP_TO_DATE = "up_to_date"
    SYNCED = "synced"
    FAILED = "failed"


@dataclass
class SyncOutcome:
    """Result of ``SyncOrchestrator.run_sync``."""

    status: SyncStatus
    message: str
    error: SyncError | None = None
    report: DownloadReport | None = None
    acknowledged: bool = False
    full_resync: bool = False


class SyncOrchestrator:
    """Drive a single sync cycle.

    Order of effects within a cycle: listing, checkpoint persisted, records
    downloaded, acknowledgement sent. The checkpoint advances before the
    downloads so an interrupted cycle does not list the same ids again.

    ``store.sync_in_progress`` guards against overlapping cycles. It is only
    a flag, which is sufficient because all callers share one event loop and
    the check-and-set has no await in between.
    """

    def __init__(
        self,
        remote: RemoteService,
        storage: Storage,
        store: MappingStore,
        pipeline: DownloadPipeline,
        reporter: Reporter,
    ) -> None:
        self.remote = remote
        self.storage = storage
        self.store = store
        self.pipeline = pipeline
        self.reporter = reporter

    async def run_sync(self, manual: bool = True) -> SyncOutcome:
        """Run one cycle unless another one is active."""
        if self.store.sync_in_progress:
            message = "ReClipped sync already in progress"
            self.reporter.report(message, show=True)
            return SyncOutcome(SyncStatus.ALREADY_RUNNING, message)

        self.store.begin_sync()
        try:
            return await self._run_cycle(manual)
        finally:
            self.store.end_sync()

    async def _run_cycle(self, manual: bool) -> SyncOutcome:
        target_dir = self.store.preferences.target_dir
        try:
            full_resync = not await self.storage.exists(target_dir)
        except (OSError, ValueError) as exc:
            logger.warning("Cannot check target directory %s: %s", target_dir, exc)
            return self.fail(TargetDirectoryError(target_dir))
        if full_resync:
            logger.info("Target directory %s is missing, requesting full resync", target_dir)

        try:
            listing = await self.remote.list_changed_records(
                since=self.store.checkpoint, sync_all=full_resync, auto=not manual
            )
        except RemoteError as exc:
            return self.fail(exc, full_resync=full_resync)

        if not listing.video_ids:
            self.store.mark_sync_result(failed=False)
            message = "ReClipped data is already up to date"
            self.reporter.report(message, timeout=4, force=True)
            return SyncOutcome(SyncStatus.UP_TO_DATE, message, full_resync=full_resync)

        self.store.advance_checkpoint(listing.last_synced_epoch)
        self.reporter.report("Syncing ReClipped data")
        logger.info(
            "Syncing %d record(s) up to epoch %d", len(listing.video_ids), listing.last_synced_epoch
        )

        try:
            report = await self.pipeline.download_all(listing.video_ids)
        except SyncError as exc:
            return self.fail(exc, full_resync=full_resync)

        acknowledged = await self._acknowledge()
        self.store.mark_sync_result(failed=False)
        message = "ReClipped sync completed"
        self.reporter.report(message, show=True, timeout=1, force=True)
        return SyncOutcome(
            SyncStatus.SYNCED,
            message,
            report=report,
            acknowledged=acknowledged,
            full_resync=full_resync,
        )

    async def _acknowledge(self) -> bool:
        """Best-effort acknowledgement; failure never fails the cycle."""
        try:
            await self.remote.acknowledge_sync()
        except RemoteError as exc:
            logger.warning("Failed to acknowledge sync: %s", exc)
            self.reporter.report(exc.user_message, timeout=4)
            return False
        return True

    def fail(self, exc: SyncError, *, full_resync: bool = False) -> SyncOutcome:
        """Record and surface a failed cycle."""
        logger.warning("Sync failed: %s", exc)
        self.store.mark_sync_result(failed=True)
        self.reporter.error(exc.user_message)
        return SyncOutcome(SyncStatus.FAILED, exc.user_message, error=exc, full_resync=full_resync)
