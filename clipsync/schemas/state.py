"""Persisted state schemas.

The whole engine state is one JSON document. Maps are written as ordered
lists of ``[key, value]`` pairs so that their structure survives any
object-to-text round trip; object-shaped maps written by older versions are
still accepted on load.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

STATE_VERSION = 1
DEFAULT_TARGET_DIR = "ReClipped"


class SyncPreferences(BaseModel):
    """User-editable sync preferences."""

    token: str = ""
    target_dir: str = Field(default=DEFAULT_TARGET_DIR, min_length=1)
    sync_frequency_minutes: int = Field(default=0, ge=0)
    trigger_on_load: bool = True
    refresh_deleted: bool = False
    reimport_show_confirmation: bool = True


class StoredState(BaseModel):
    """Everything the engine persists between sessions."""

    version: int = STATE_VERSION
    client_id: str | None = None
    preferences: SyncPreferences = Field(default_factory=SyncPreferences)
    last_synced_epoch: int = Field(default=0, ge=0)
    sync_in_progress: bool = False
    last_sync_failed: bool = False
    path_ids: list[tuple[str, str]] = Field(default_factory=list)
    source_urls: list[tuple[str, str]] = Field(default_factory=list)
    pending_retry: list[str] = Field(default_factory=list)
    start_offsets: list[tuple[str, int]] = Field(default_factory=list)

    @field_validator("path_ids", "source_urls", "start_offsets", mode="before")
    @classmethod
    def _accept_object_maps(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return list(value.items())
        return value
