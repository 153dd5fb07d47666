"""In-memory state models for clipsync."""

from clipsync.models.mapping import MappingStore

__all__ = [
    "MappingStore",
]
