"""Download pipeline: fetch records one by one and write them locally."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from clipsync.exceptions import (
    InvalidResponseError,
    RemoteResponseError,
    RemoteTransportError,
    TargetDirectoryError,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from clipsync.filesystem.record_writer import RecordWriter
    from clipsync.models.mapping import MappingStore
    from clipsync.remote.base import RemoteService
    from clipsync.services.notify_service import Reporter

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_DELAY = 0.01


@dataclass
class DownloadReport:
    """Outcome of one ``download_all`` run."""

    written: dict[str, str] = field(default_factory=dict)  # record id -> path
    not_ready: list[str] = field(default_factory=list)
    invalid: list[str] = field(default_factory=list)
    unreachable: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return (
            len(self.written)
            + len(self.not_ready)
            + len(self.invalid)
            + len(self.unreachable)
            + len(self.failed)
        )


class DownloadPipeline:
    """Sequentially download records and mirror them into storage.

    Failure policy per record:
    - transport error on fetch: logged, record skipped, not retried;
    - non-success response: the record and every id after it are queued in
      ``pending_retry`` and the error is re-raised, abandoning the batch;
    - empty payload: record is not ready yet, skipped;
    - malformed payload: logged, id queued in ``pending_retry``;
    - write error: logged, reported, id queued in ``pending_retry``.

    Runs are serialized with a lock so a refresh or reimport waits for an
    in-flight sync instead of interleaving with it.
    """

    def __init__(
        self,
        remote: RemoteService,
        writer: RecordWriter,
        store: MappingStore,
        reporter: Reporter,
        *,
        request_delay: float = DEFAULT_REQUEST_DELAY,
    ) -> None:
        self.remote = remote
        self.writer = writer
        self.store = store
        self.reporter = reporter
        self.request_delay = request_delay
        self._lock = asyncio.Lock()

    async def download_all(self, record_ids: Sequence[str]) -> DownloadReport:
        """Download ``record_ids`` in order.

        Raises:
            RemoteResponseError: If the server answers a fetch with a
                non-success status. Records already written stay written.
            TargetDirectoryError: If the target directory cannot be created.
        """
        async with self._lock:
            return await self._download_all(record_ids)

    async def _download_all(self, record_ids: Sequence[str]) -> DownloadReport:
        report = DownloadReport()
        try:
            await self.writer.ensure_directory(self.writer.target_dir)
        except (OSError, ValueError) as exc:
            raise TargetDirectoryError(self.writer.target_dir) from exc

        total = len(record_ids)
        for index, record_id in enumerate(record_ids, start=1):
            self.reporter.progress(index, total)
            try:
                payload = await self.remote.fetch_record(record_id)
            except RemoteTransportError:
                logger.warning("Fetch failed for record %s, skipping", record_id)
                report.unreachable.append(record_id)
                continue
            except InvalidResponseError as exc:
                logger.warning("Skipping record %s: %s", record_id, exc)
                self.store.add_pending(record_id)
                report.invalid.append(record_id)
                continue
            except RemoteResponseError:
                for remaining_id in record_ids[index - 1 :]:
                    self.store.add_pending(remaining_id)
                raise

            if payload is None:
                logger.debug("Record %s is not ready yet", record_id)
                report.not_ready.append(record_id)
                continue

            self.reporter.report(f"Saving file {payload.title}", timeout=30)
            try:
                await self.writer.ensure_cross_references(payload.channel, payload.platform)
                path = await self.writer.write_record(payload)
            except Exception as exc:
                logger.exception("Error writing record %s (%s)", record_id, payload.title)
                self.reporter.error(f"ReClipped: error while writing {payload.title}: {exc}")
                self.store.add_pending(record_id)
                report.failed.append(record_id)
            else:
                self.store.record_written(path, record_id, payload.source_url)
                report.written[record_id] = path

            await asyncio.sleep(self.request_delay)

        logger.info(
            "Downloaded %d/%d record(s), %d failed, %d not ready, %d invalid, %d unreachable",
            len(report.written),
            total,
            len(report.failed),
            len(report.not_ready),
            len(report.invalid),
            len(report.unreachable),
        )
        return report
