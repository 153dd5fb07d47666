"""Sync engine entry point: wiring, lifecycle and user actions."""

from __future__ import annotations

import logging
import secrets
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from clipsync.exceptions import SyncError
from clipsync.filesystem.record_writer import RecordWriter
from clipsync.filesystem.state_file import StateWriter, load_state
from clipsync.filesystem.storage import LocalStorage, normalize_path
from clipsync.models.mapping import MappingStore
from clipsync.remote.client import RemoteClient
from clipsync.services.download_service import DownloadPipeline
from clipsync.services.notify_service import LoggingNotifier, Reporter
from clipsync.services.reconcile_service import ReconciliationWatcher
from clipsync.services.schedule_service import Scheduler
from clipsync.services.sync_service import SyncOrchestrator

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from clipsync.config import Settings
    from clipsync.filesystem.storage import Storage
    from clipsync.remote.base import RemoteService
    from clipsync.services.download_service import DownloadReport
    from clipsync.services.notify_service import Notifier
    from clipsync.services.sync_service import SyncOutcome

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool) -> None:
    """Configure application logging."""
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.INFO if debug else logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def generate_client_id() -> str:
    """Random identifier sent with every request to tell clients apart."""
    return secrets.token_hex(6)


@dataclass
class PlaybackSource:
    """Playable resource behind a synced file and where to resume it."""

    url: str
    start_seconds: int


class SyncApp:
    """Host-facing facade over the sync engine.

    Hosts forward file events to :meth:`file_deleted` and
    :meth:`file_renamed` and expose :meth:`sync_now` and :meth:`reimport` as
    user actions. All methods must be called from the event loop that runs
    :func:`lifespan`.
    """

    def __init__(
        self,
        settings: Settings,
        store: MappingStore,
        state_writer: StateWriter,
        storage: Storage,
        remote: RemoteService,
        notifier: Notifier,
        *,
        owns_remote: bool = False,
    ) -> None:
        self.settings = settings
        self.store = store
        self.state_writer = state_writer
        self.storage = storage
        self.remote = remote
        self.reporter = Reporter(notifier)
        self._owns_remote = owns_remote

        self.writer = RecordWriter(storage, store.preferences.target_dir)
        self.pipeline = DownloadPipeline(
            remote,
            self.writer,
            store,
            self.reporter,
            request_delay=settings.request_delay_seconds,
        )
        self.orchestrator = SyncOrchestrator(remote, storage, store, self.pipeline, self.reporter)
        self.watcher = ReconciliationWatcher(
            store,
            self.pipeline,
            debounce_seconds=settings.refresh_debounce_seconds,
            on_failure=self.orchestrator.fail,
        )
        self.scheduler = Scheduler(self.auto_sync, unit_seconds=settings.schedule_unit_seconds)

    async def start(self) -> None:
        """Recover from a previous session and start background work."""
        self.store.clear_stale_sync_flag()
        prefs = self.store.preferences
        self.scheduler.configure(prefs.sync_frequency_minutes)
        self.watcher.request_refresh()
        if prefs.token and prefs.trigger_on_load and not self.store.sync_in_progress:
            await self.auto_sync()

    async def stop(self) -> None:
        """Stop timers, drop pending refreshes and persist state.

        Ids waiting for a refresh stay in the retry queue and are picked up
        on the next start.
        """
        await self.scheduler.stop()
        self.watcher.cancel()
        await self.state_writer.flush()
        if self._owns_remote and isinstance(self.remote, RemoteClient):
            await self.remote.close()

    async def sync_now(self) -> SyncOutcome:
        """User action: sync your data now."""
        return await self.orchestrator.run_sync(manual=True)

    async def auto_sync(self) -> SyncOutcome:
        return await self.orchestrator.run_sync(manual=False)

    def can_reimport(self, path: str) -> bool:
        """Whether ``path`` is a synced file that can be reimported."""
        return self.store.is_tracked(normalize_path(path))

    async def reimport(self, path: str) -> DownloadReport | None:
        """User action: replace a synced file with a fresh copy from the server.

        Raises:
            ValueError: If ``path`` is not a synced file.
        """
        record_id = self.store.id_for_path(normalize_path(path))
        if record_id is None:
            msg = f"Not a synced file: {path}"
            raise ValueError(msg)
        logger.info("Reimporting %s (record %s)", path, record_id)
        try:
            return await self.pipeline.download_all([record_id])
        except SyncError as exc:
            self.orchestrator.fail(exc)
            return None

    def file_deleted(self, path: str) -> str | None:
        return self.watcher.on_delete(normalize_path(path))

    def file_renamed(self, old_path: str, new_path: str) -> str | None:
        return self.watcher.on_rename(normalize_path(old_path), normalize_path(new_path))

    def set_sync_frequency(self, minutes: int) -> None:
        self.store.update_preferences(sync_frequency_minutes=minutes)
        self.scheduler.configure(minutes)

    def set_refresh_deleted(self, enabled: bool) -> None:
        self.store.update_preferences(refresh_deleted=enabled)
        if enabled:
            self.watcher.request_refresh()

    def set_trigger_on_load(self, enabled: bool) -> None:
        self.store.update_preferences(trigger_on_load=enabled)

    def set_token(self, token: str) -> None:
        """Store a new bearer token and use it for subsequent requests."""
        self.store.update_preferences(token=token)
        if isinstance(self.remote, RemoteClient):
            self.remote.set_token(token)

    @property
    def reimport_needs_confirmation(self) -> bool:
        """Whether the host should ask before overwriting a file on reimport."""
        return self.store.preferences.reimport_show_confirmation

    def set_reimport_confirmation(self, enabled: bool) -> None:
        self.store.update_preferences(reimport_show_confirmation=enabled)

    def set_target_dir(self, target_dir: str) -> None:
        prefs = self.store.update_preferences(target_dir=normalize_path(target_dir))
        self.writer.target_dir = prefs.target_dir

    def playback_source(self, path: str) -> PlaybackSource | None:
        """Source url and resume offset for a synced file, if it has one."""
        url = self.store.source_url_for_path(normalize_path(path))
        if url is None:
            return None
        return PlaybackSource(url=url, start_seconds=self.store.start_offset(url))

    def remember_playback_position(self, url: str, seconds: float) -> None:
        self.store.set_start_offset(url, round(seconds))


def create_app(
    settings: Settings,
    *,
    storage: Storage | None = None,
    remote: RemoteService | None = None,
    notifier: Notifier | None = None,
) -> SyncApp:
    """Build a :class:`SyncApp` from settings and the persisted state.

    Collaborators default to the local disk, the HTTP API and a logging
    notifier; tests and hosts pass their own.
    """
    settings.validate_runtime_security()
    state = load_state(settings.state_file)
    store = MappingStore(state)
    state_writer = StateWriter(settings.state_file, store.to_state)
    store.on_change = state_writer.request_save

    if settings.token and settings.token != store.preferences.token:
        store.update_preferences(token=settings.token)
    client_id = store.ensure_client_id(generate_client_id)

    owns_remote = remote is None
    if remote is None:
        remote = RemoteClient(
            settings.server_url,
            store.preferences.token,
            client_id,
            timeout=settings.request_timeout,
        )
    return SyncApp(
        settings,
        store,
        state_writer,
        storage or LocalStorage(settings.vault_dir),
        remote,
        notifier or LoggingNotifier(),
        owns_remote=owns_remote,
    )


@asynccontextmanager
async def lifespan(app: SyncApp) -> AsyncGenerator[SyncApp]:
    """Application lifespan: startup and shutdown."""
    _configure_logging(app.settings.debug)
    logger.info("Starting clipsync (debug=%s)", app.settings.debug)
    await app.start()
    try:
        yield app
    finally:
        try:
            await app.stop()
        except Exception as exc:
            logger.error("Error during shutdown: %s", exc, exc_info=True)
