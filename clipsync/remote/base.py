"""Protocol for the remote export service."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from clipsync.schemas.remote import ExportListing, RecordPayload


@runtime_checkable
class RemoteService(Protocol):
    """Remote calls used by the sync engine.

    Implementations raise ``clipsync.exceptions.RemoteError`` subclasses on
    failure and never return partial results.
    """

    async def list_changed_records(
        self, *, since: int, sync_all: bool, auto: bool = False
    ) -> ExportListing:
        """List ids of records changed after ``since``."""
        ...

    async def fetch_record(self, record_id: str) -> RecordPayload | None:
        """Fetch a record, or None if it is not ready yet."""
        ...

    async def acknowledge_sync(self) -> None:
        """Acknowledge that the listed records were processed."""
        ...
