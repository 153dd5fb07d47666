"""Remote service response schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ExportListing(BaseModel):
    """Response of the changed-records listing call."""

    last_synced_epoch: int = Field(ge=0)
    video_ids: list[str] = Field(default_factory=list)
    status: str = ""


class PlatformInfo(BaseModel):
    """Platform a record was clipped from, e.g. YouTube."""

    model_config = ConfigDict(populate_by_name=True)

    base_url: str = Field(default="", alias="baseurl")
    platform: str = ""
    id: str = ""
    embed_url: str = Field(default="", alias="embedurl")
    platform_path: str = Field(default="", alias="platformPath")


class ChannelInfo(BaseModel):
    """Channel (author) a record belongs to."""

    model_config = ConfigDict(populate_by_name=True)

    channel_name: str = Field(default="", alias="channelName")
    channel_link: str = Field(default="", alias="channelLink")
    channel_path: str = Field(default="", alias="channelPath")


class RecordPayload(BaseModel):
    """Resolved content of a single record.

    ``platform`` and ``channel`` are ``None`` when the server sends an empty
    object for them.
    """

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1)
    annotations: str = ""
    source_url: str | None = Field(default=None, alias="vidUrl")
    status: str = ""
    platform: PlatformInfo | None = None
    channel: ChannelInfo | None = None

    @field_validator("platform", "channel", mode="before")
    @classmethod
    def _empty_object_is_absent(cls, value: Any) -> Any:
        if isinstance(value, dict) and not value:
            return None
        return value

    @field_validator("source_url", mode="before")
    @classmethod
    def _blank_url_is_absent(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value
