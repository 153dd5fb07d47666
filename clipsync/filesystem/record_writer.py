"""Writes resolved records and their cross-reference pages to storage."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from clipsync.filesystem.storage import normalize_path, parent_dirs

if TYPE_CHECKING:
    from clipsync.filesystem.storage import Storage
    from clipsync.schemas.remote import ChannelInfo, PlatformInfo, RecordPayload

logger = logging.getLogger(__name__)

PAGE_SUFFIX = ".md"


def platform_page_content(platform: PlatformInfo) -> str:
    return f"[{platform.platform}]({platform.base_url}) \n"


def channel_page_content(channel: ChannelInfo, platform: PlatformInfo | None) -> str:
    link = f"Visit [{channel.channel_name}]({channel.channel_link})"
    if platform is None or not platform.platform:
        return f"{link} \n"
    return f"{link} on [[{platform.platform}]] \n"


class RecordWriter:
    """Persist records under ``target_dir`` in a storage backend.

    Record files are mirrors of the remote source and are always overwritten.
    Cross-reference pages are shared between records and are only created
    when missing.
    """

    def __init__(self, storage: Storage, target_dir: str) -> None:
        self.storage = storage
        self.target_dir = normalize_path(target_dir)

    def record_path(self, payload: RecordPayload) -> str:
        """Compute the local path of a record from its title."""
        return normalize_path(f"{self.target_dir}/{payload.title}{PAGE_SUFFIX}")

    async def ensure_directory(self, dir_path: str) -> None:
        """Create ``dir_path`` and any missing ancestors."""
        dir_path = normalize_path(dir_path)
        if dir_path == "/":
            return
        for ancestor in [*parent_dirs(dir_path), dir_path]:
            if not await self.storage.exists(ancestor):
                await self.storage.mkdir(ancestor)

    async def ensure_parent_directories(self, file_path: str) -> None:
        for ancestor in parent_dirs(file_path):
            if not await self.storage.exists(ancestor):
                await self.storage.mkdir(ancestor)

    async def _write_if_missing(self, path: str, content: str) -> bool:
        await self.ensure_parent_directories(path)
        if await self.storage.exists(path):
            return False
        await self.storage.write(path, content)
        logger.info("Created cross-reference page %s", path)
        return True

    async def ensure_cross_references(
        self, channel: ChannelInfo | None, platform: PlatformInfo | None
    ) -> None:
        """Create the platform and channel pages a record links to.

        A channel whose link is the platform's own base url is the platform
        itself and gets no separate page.
        """
        if platform is not None and platform.platform_path:
            await self._write_if_missing(
                normalize_path(platform.platform_path + PAGE_SUFFIX),
                platform_page_content(platform),
            )
        if channel is None or not channel.channel_path:
            return
        if platform is not None and platform.base_url == channel.channel_link:
            return
        await self._write_if_missing(
            normalize_path(channel.channel_path + PAGE_SUFFIX),
            channel_page_content(channel, platform),
        )

    async def write_record(self, payload: RecordPayload) -> str:
        """Write the record content, replacing any local edits. Returns the path."""
        path = self.record_path(payload)
        await self.ensure_parent_directories(path)
        await self.storage.write(path, payload.annotations)
        return path
