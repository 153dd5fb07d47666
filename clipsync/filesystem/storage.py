"""Local file storage backend.

Paths handed to a storage backend are vault-relative POSIX strings such as
``ReClipped/Some Video.md``.
"""

from __future__ import annotations

import asyncio
import logging
import re
import unicodedata
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

_NBSP_RE = re.compile("[\u00a0\u202f]")
_SLASHES_RE = re.compile(r"[\\/]+")


def normalize_path(path: str) -> str:
    """Normalize a vault-relative path.

    - Unicode NFC
    - Non-breaking spaces become regular spaces
    - Backslashes become slashes and runs of slashes collapse
    - Leading and trailing slashes are stripped
    - ``"/"`` is returned for an empty result (the vault root)
    """
    text = unicodedata.normalize("NFC", path)
    text = _NBSP_RE.sub(" ", text)
    text = _SLASHES_RE.sub("/", text)
    text = text.strip("/")
    return text or "/"


def parent_dirs(path: str) -> list[str]:
    """Return every ancestor directory of ``path``, outermost first.

    ``parent_dirs("a/b/c.md")`` is ``["a", "a/b"]``.
    """
    parts = normalize_path(path).split("/")[:-1]
    return ["/".join(parts[: i + 1]) for i in range(len(parts))]


@runtime_checkable
class Storage(Protocol):
    """File operations the sync engine needs from a storage backend."""

    async def exists(self, path: str) -> bool:
        """Return True if a file or directory exists at ``path``."""
        ...

    async def mkdir(self, path: str) -> None:
        """Create the directory ``path``."""
        ...

    async def write(self, path: str, content: str) -> None:
        """Write ``content`` to ``path``, replacing any existing file."""
        ...


class LocalStorage:
    """Storage backend rooted at a directory on the local disk.

    Blocking file calls run in a worker thread so the event loop never stalls.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def _resolve(self, path: str) -> Path:
        """Resolve a vault-relative path, refusing anything outside the root.

        Raises ValueError if the resolved path escapes the root directory.
        """
        rel = normalize_path(path)
        full_path = (self.root / rel).resolve() if rel != "/" else self.root.resolve()
        if not full_path.is_relative_to(self.root.resolve()):
            raise ValueError(f"Path traversal detected: {path}")
        return full_path

    async def exists(self, path: str) -> bool:
        full_path = self._resolve(path)
        return await asyncio.to_thread(full_path.exists)

    async def mkdir(self, path: str) -> None:
        full_path = self._resolve(path)
        await asyncio.to_thread(full_path.mkdir, parents=True, exist_ok=True)
        logger.debug("Created directory %s", full_path)

    async def write(self, path: str, content: str) -> None:
        full_path = self._resolve(path)
        await asyncio.to_thread(full_path.write_text, content, encoding="utf-8")
