"""Tests for the sync orchestrator."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from clipsync.exceptions import (
    RemoteResponseError,
    RemoteTransportError,
    SyncConflictError,
    SyncLockedError,
    TargetDirectoryError,
)
from clipsync.schemas.remote import ExportListing
from clipsync.services.sync_service import SyncStatus
from tests.conftest import make_payload

if TYPE_CHECKING:
    from clipsync.models.mapping import MappingStore
    from clipsync.services.download_service import DownloadPipeline
    from clipsync.services.sync_service import SyncOrchestrator
    from tests.conftest import FakeRemote, MemoryStorage, RecordingNotifier


def _listing(epoch: int, *ids: str) -> ExportListing:
    return ExportListing(last_synced_epoch=epoch, video_ids=list(ids), status="ok")


class TestFullResync:
    async def test_missing_target_dir_requests_everything(
        self, orchestrator: SyncOrchestrator, remote: FakeRemote, store: MappingStore
    ) -> None:
        store.advance_checkpoint(55)
        await orchestrator.run_sync(manual=True)
        name, args = remote.calls[0]
        assert name == "list"
        assert args == {"since": 55, "sync_all": True, "auto": False}

    async def test_existing_target_dir_is_incremental(
        self,
        orchestrator: SyncOrchestrator,
        remote: FakeRemote,
        storage: MemoryStorage,
        store: MappingStore,
    ) -> None:
        storage.dirs.add(store.preferences.target_dir)
        store.advance_checkpoint(55)
        outcome = await orchestrator.run_sync(manual=False)
        assert remote.calls[0][1] == {"since": 55, "sync_all": False, "auto": True}
        assert outcome.full_resync is False


class TestUpToDate:
    async def test_empty_listing_keeps_checkpoint_and_skips_pipeline(
        self, orchestrator: SyncOrchestrator, remote: FakeRemote, store: MappingStore
    ) -> None:
        store.advance_checkpoint(10)
        remote.listing = _listing(99)
        outcome = await orchestrator.run_sync()
        assert outcome.status == SyncStatus.UP_TO_DATE
        assert store.checkpoint == 10
        assert remote.call_names() == ["list"]
        assert store.sync_in_progress is False
        assert store.last_sync_failed is False


class TestSuccessfulSync:
    async def test_partial_write_failure_scenario(
        self,
        orchestrator: SyncOrchestrator,
        remote: FakeRemote,
        storage: MemoryStorage,
        store: MappingStore,
    ) -> None:
        remote.listing = _listing(100, "v1", "v2")
        remote.records["v1"] = make_payload("First")
        remote.records["v2"] = make_payload("Second")
        storage.fail_writes.add("ReClipped/Second.md")

        outcome = await orchestrator.run_sync()

        assert outcome.status == SyncStatus.SYNCED
        assert store.checkpoint == 100
        assert store.id_for_path("ReClipped/First.md") == "v1"
        assert store.id_for_path("ReClipped/Second.md") is None
        assert store.pending_ids() == ["v2"]
        assert outcome.acknowledged is True
        assert remote.call_names() == ["list", "fetch", "fetch", "ack"]

    async def test_checkpoint_advances_before_downloads(
        self, orchestrator: SyncOrchestrator, remote: FakeRemote, store: MappingStore
    ) -> None:
        seen: list[int] = []
        original_fetch = remote.fetch_record

        async def fetch(record_id: str):
            seen.append(store.checkpoint)
            return await original_fetch(record_id)

        remote.fetch_record = fetch  # type: ignore[method-assign]
        remote.listing = _listing(42, "a", "b")
        remote.records = {"a": make_payload("A"), "b": make_payload("B")}

        await orchestrator.run_sync()

        assert seen == [42, 42]

    async def test_ack_failure_does_not_fail_sync(
        self,
        orchestrator: SyncOrchestrator,
        remote: FakeRemote,
        store: MappingStore,
    ) -> None:
        remote.listing = _listing(7, "a")
        remote.records["a"] = make_payload("A")
        remote.ack_error = RemoteResponseError(500, "Internal Server Error")

        outcome = await orchestrator.run_sync()

        assert outcome.status == SyncStatus.SYNCED
        assert outcome.acknowledged is False
        assert store.last_sync_failed is False
        assert store.checkpoint == 7

    async def test_success_clears_sticky_failure_flag(
        self, orchestrator: SyncOrchestrator, remote: FakeRemote, store: MappingStore
    ) -> None:
        store.mark_sync_result(failed=True)
        remote.listing = _listing(3, "a")
        remote.records["a"] = make_payload("A")
        await orchestrator.run_sync()
        assert store.last_sync_failed is False


class TestListingFailures:
    async def test_transport_error(
        self,
        orchestrator: SyncOrchestrator,
        remote: FakeRemote,
        store: MappingStore,
        notifier: RecordingNotifier,
    ) -> None:
        store.advance_checkpoint(5)
        remote.listing = RemoteTransportError()
        outcome = await orchestrator.run_sync()
        assert outcome.status == SyncStatus.FAILED
        assert isinstance(outcome.error, RemoteTransportError)
        assert outcome.message == "Can't connect to server"
        assert store.checkpoint == 5
        assert store.sync_in_progress is False
        assert store.last_sync_failed is True
        assert "Can't connect to server" in notifier.notices

    async def test_conflict_is_reported_distinctly(
        self, orchestrator: SyncOrchestrator, remote: FakeRemote, store: MappingStore
    ) -> None:
        remote.listing = SyncConflictError(409, "Conflict")
        outcome = await orchestrator.run_sync()
        assert isinstance(outcome.error, SyncConflictError)
        assert outcome.message == "Sync in progress initiated by different client"
        assert store.sync_in_progress is False

    async def test_lockout_is_reported_with_wait_hint(
        self, orchestrator: SyncOrchestrator, remote: FakeRemote
    ) -> None:
        remote.listing = SyncLockedError(417, "Expectation Failed")
        outcome = await orchestrator.run_sync()
        assert isinstance(outcome.error, SyncLockedError)
        assert "Wait for an hour" in outcome.message

    async def test_generic_failure_uses_status_text(
        self, orchestrator: SyncOrchestrator, remote: FakeRemote
    ) -> None:
        remote.listing = RemoteResponseError(503, "Service Unavailable")
        outcome = await orchestrator.run_sync()
        assert outcome.message == "Service Unavailable"
        assert remote.call_names() == ["list"]


class TestFetchFailures:
    async def test_non_ok_fetch_aborts_remaining_ids(
        self, orchestrator: SyncOrchestrator, remote: FakeRemote, store: MappingStore
    ) -> None:
        remote.listing = _listing(50, "a", "b", "c")
        remote.records = {
            "a": make_payload("A"),
            "b": RemoteResponseError(500, "Internal Server Error"),
            "c": make_payload("C"),
        }
        outcome = await orchestrator.run_sync()

        assert outcome.status == SyncStatus.FAILED
        assert remote.call_names() == ["list", "fetch", "fetch"]
        assert store.checkpoint == 50
        assert store.id_for_path("ReClipped/A.md") == "a"
        assert store.last_sync_failed is True
        assert store.sync_in_progress is False
        assert store.pending_ids() == ["b", "c"]

    async def test_aborted_ids_are_recovered_by_the_next_refresh(
        self,
        orchestrator: SyncOrchestrator,
        pipeline: DownloadPipeline,
        remote: FakeRemote,
        store: MappingStore,
    ) -> None:
        remote.listing = _listing(50, "a", "b")
        remote.records = {"a": RemoteResponseError(502, "Bad Gateway"), "b": make_payload("B")}
        await orchestrator.run_sync()

        remote.records["a"] = make_payload("A")
        await pipeline.download_all(store.pending_ids())

        assert store.pending_ids() == []
        assert store.tracked_paths() == {"ReClipped/A.md": "a", "ReClipped/B.md": "b"}


class TestTargetDirectoryFailures:
    async def test_unwritable_target_directory_fails_the_cycle(
        self,
        orchestrator: SyncOrchestrator,
        remote: FakeRemote,
        storage: MemoryStorage,
        store: MappingStore,
        notifier: RecordingNotifier,
    ) -> None:
        storage.fail_mkdirs.add("ReClipped")
        remote.listing = _listing(9, "a")
        remote.records["a"] = make_payload("A")

        outcome = await orchestrator.run_sync()

        assert outcome.status == SyncStatus.FAILED
        assert isinstance(outcome.error, TargetDirectoryError)
        assert outcome.message == "Can't write to ReClipped"
        assert store.last_sync_failed is True
        assert store.sync_in_progress is False
        assert "Can't write to ReClipped" in notifier.notices
        assert remote.call_names() == ["list"]

    async def test_failing_existence_check_fails_before_listing(
        self,
        orchestrator: SyncOrchestrator,
        remote: FakeRemote,
        storage: MemoryStorage,
        store: MappingStore,
    ) -> None:
        async def broken_exists(path: str) -> bool:
            raise OSError("device not ready")

        storage.exists = broken_exists  # type: ignore[method-assign]

        outcome = await orchestrator.run_sync()

        assert outcome.status == SyncStatus.FAILED
        assert isinstance(outcome.error, TargetDirectoryError)
        assert remote.calls == []
        assert store.last_sync_failed is True
        assert store.sync_in_progress is False


class TestConcurrencyGuard:
    async def test_second_call_while_running_does_nothing(
        self, orchestrator: SyncOrchestrator, remote: FakeRemote, store: MappingStore
    ) -> None:
        remote.listing_gate = asyncio.Event()
        first = asyncio.create_task(orchestrator.run_sync())
        await asyncio.sleep(0)
        assert store.sync_in_progress is True

        second = await orchestrator.run_sync()

        assert second.status == SyncStatus.ALREADY_RUNNING
        assert remote.call_names() == ["list"]

        remote.listing_gate.set()
        await first
        assert store.sync_in_progress is False

    async def test_flag_is_reset_when_pipeline_raises_unexpectedly(
        self, orchestrator: SyncOrchestrator, remote: FakeRemote, store: MappingStore
    ) -> None:
        remote.listing = _listing(1, "a")

        async def boom(record_id: str):
            raise RuntimeError("bug")

        remote.fetch_record = boom  # type: ignore[method-assign]
        with pytest.raises(RuntimeError, match="bug"):
            await orchestrator.run_sync()
        assert store.sync_in_progress is False
