"""Shared test fixtures for clipsync."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import pytest

from clipsync.config import Settings
from clipsync.exceptions import RemoteError
from clipsync.filesystem.record_writer import RecordWriter
from clipsync.filesystem.storage import normalize_path
from clipsync.models.mapping import MappingStore
from clipsync.schemas.remote import ExportListing, RecordPayload
from clipsync.services.download_service import DownloadPipeline
from clipsync.services.notify_service import Reporter
from clipsync.services.sync_service import SyncOrchestrator

if TYPE_CHECKING:
    from pathlib import Path


def make_payload(
    title: str,
    annotations: str = "notes",
    *,
    source_url: str | None = None,
    platform: dict[str, str] | None = None,
    channel: dict[str, str] | None = None,
) -> RecordPayload:
    """Build a record payload the way the server would send it."""
    data: dict[str, Any] = {
        "title": title,
        "annotations": annotations,
        "vidUrl": source_url or "",
        "status": "ok",
        "platform": platform or {},
        "channel": channel or {},
    }
    return RecordPayload.model_validate(data)


class MemoryStorage:
    """In-memory storage backend that records every operation."""

    def __init__(self) -> None:
        self.files: dict[str, str] = {}
        self.dirs: set[str] = set()
        self.fail_writes: set[str] = set()
        self.fail_mkdirs: set[str] = set()
        self.ops: list[tuple[str, str]] = []

    async def exists(self, path: str) -> bool:
        path = normalize_path(path)
        self.ops.append(("exists", path))
        return path in self.files or path in self.dirs

    async def mkdir(self, path: str) -> None:
        path = normalize_path(path)
        self.ops.append(("mkdir", path))
        if path in self.fail_mkdirs:
            raise PermissionError(f"read-only: {path}")
        self.dirs.add(path)

    async def write(self, path: str, content: str) -> None:
        path = normalize_path(path)
        self.ops.append(("write", path))
        if path in self.fail_writes:
            raise OSError(f"disk full: {path}")
        self.files[path] = content


class FakeRemote:
    """Scriptable remote service.

    ``records`` maps an id to a payload, ``None`` (not ready) or an exception
    to raise. ``listing_gate`` lets a test hold the listing call open.
    """

    def __init__(self) -> None:
        self.listing: ExportListing | RemoteError = ExportListing(
            last_synced_epoch=0, video_ids=[], status="ok"
        )
        self.records: dict[str, RecordPayload | RemoteError | None] = {}
        self.ack_error: RemoteError | None = None
        self.listing_gate: asyncio.Event | None = None
        self.calls: list[tuple[str, Any]] = []

    async def list_changed_records(
        self, *, since: int, sync_all: bool, auto: bool = False
    ) -> ExportListing:
        self.calls.append(("list", {"since": since, "sync_all": sync_all, "auto": auto}))
        if self.listing_gate is not None:
            await self.listing_gate.wait()
        if isinstance(self.listing, RemoteError):
            raise self.listing
        return self.listing

    async def fetch_record(self, record_id: str) -> RecordPayload | None:
        self.calls.append(("fetch", record_id))
        result = self.records.get(record_id)
        if isinstance(result, RemoteError):
            raise result
        return result

    async def acknowledge_sync(self) -> None:
        self.calls.append(("ack", None))
        if self.ack_error is not None:
            raise self.ack_error

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]


class RecordingNotifier:
    """Notifier that keeps every message for assertions."""

    def __init__(self) -> None:
        self.statuses: list[str] = []
        self.notices: list[str] = []

    def status(self, message: str, timeout: float = 0, force: bool = False) -> None:
        self.statuses.append(message)

    def notice(self, message: str) -> None:
        self.notices.append(message)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def store() -> MappingStore:
    return MappingStore()


@pytest.fixture
def writer(storage: MemoryStorage, store: MappingStore) -> RecordWriter:
    return RecordWriter(storage, store.preferences.target_dir)


@pytest.fixture
def pipeline(
    remote: FakeRemote,
    writer: RecordWriter,
    store: MappingStore,
    notifier: RecordingNotifier,
) -> DownloadPipeline:
    return DownloadPipeline(remote, writer, store, Reporter(notifier), request_delay=0)


@pytest.fixture
def orchestrator(
    remote: FakeRemote,
    storage: MemoryStorage,
    store: MappingStore,
    pipeline: DownloadPipeline,
    notifier: RecordingNotifier,
) -> SyncOrchestrator:
    return SyncOrchestrator(remote, storage, store, pipeline, Reporter(notifier))


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Create test settings with temporary paths and no pacing delays."""
    vault = tmp_path / "vault"
    vault.mkdir()
    return Settings(
        debug=True,
        server_url="http://localhost:8000",
        vault_dir=vault,
        state_file=tmp_path / "state.json",
        request_delay_seconds=0,
        refresh_debounce_seconds=0.05,
        schedule_unit_seconds=0.05,
    )
