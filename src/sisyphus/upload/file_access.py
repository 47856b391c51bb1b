"""Local file access for the upload engine.

Every failure is translated into a typed :class:`FileAccessError` subclass
so the session can abort immediately instead of retrying. Chunk bodies are
streamed with ``aiofiles`` in blocks of :data:`READ_BLOCK_SIZE`, so memory
use is bounded by the block size rather than the chunk or file size.
"""

from __future__ import annotations

import contextlib
import logging
import mimetypes
from collections.abc import AsyncIterator
from pathlib import Path

import aiofiles

from sisyphus.constants import READ_BLOCK_SIZE
from sisyphus.upload.exceptions import (
    FileChannelOpenError,
    FileMetadataReadError,
    FileSizeReadError,
)

logger = logging.getLogger(__name__)


class FileAccessor:
    """Stateless reader for file attributes and byte ranges."""

    def __init__(self, block_size: int = READ_BLOCK_SIZE) -> None:
        self._block_size = block_size

    # ------------------------------------------------------------------
    # Attributes
    # ------------------------------------------------------------------

    def size(self, path: str | Path) -> int:
        """Return the file size in bytes.

        Raises:
            FileSizeReadError: If the path cannot be stat'ed.
        """
        try:
            return Path(path).stat().st_size
        except OSError as exc:
            logger.error("Reading file size failed for %s: %s", path, exc)
            raise FileSizeReadError(path) from exc

    def last_modified_millis(self, path: str | Path) -> int:
        """Return the last-modified time in whole milliseconds since the epoch.

        Raises:
            FileMetadataReadError: If the path cannot be stat'ed.
        """
        try:
            return Path(path).stat().st_mtime_ns // 1_000_000
        except OSError as exc:
            logger.error("Reading modification time failed for %s: %s", path, exc)
            raise FileMetadataReadError(path) from exc

    @staticmethod
    def probe_content_type(path: str | Path) -> str | None:
        """Best-effort content type guess from the file name; ``None`` if unknown."""
        content_type, _encoding = mimetypes.guess_type(Path(path).name)
        return content_type

    # ------------------------------------------------------------------
    # Byte ranges
    # ------------------------------------------------------------------

    async def read_range(self, path: str | Path, offset: int, length: int) -> bytes:
        """Read up to *length* bytes starting at *offset* into memory."""
        parts: list[bytes] = []
        async with self.open_range(path, offset, length) as blocks:
            async for block in blocks:
                parts.append(block)
        return b"".join(parts)

    @contextlib.asynccontextmanager
    async def open_range(
        self, path: str | Path, offset: int, length: int
    ) -> AsyncIterator[AsyncIterator[bytes]]:
        """Open *path* and yield an async iterator over ``[offset, offset + length)``.

        The handle is opened on entry and closed on every exit path,
        including cancellation of the enclosing task.

        Raises:
            FileChannelOpenError: If the file cannot be opened for reading.
        """
        try:
            handle = await aiofiles.open(path, "rb")
        except OSError as exc:
            logger.error("Opening %s for reading failed: %s", path, exc)
            raise FileChannelOpenError(path) from exc

        try:
            await handle.seek(offset)
            yield self._iter_blocks(handle, length)
        finally:
            await handle.close()

    async def _iter_blocks(self, handle, length: int) -> AsyncIterator[bytes]:
        remaining = length
        while remaining > 0:
            block = await handle.read(min(self._block_size, remaining))
            if not block:
                break
            remaining -= len(block)
            yield block
