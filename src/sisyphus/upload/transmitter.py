"""Single-chunk ``PATCH`` transmission.

A transmission either returns the server's new total offset or raises
:class:`ChunkTransmissionError`. It never decides whether to retry; that
is the job of :class:`~sisyphus.upload.retry.RetryPolicy`.
"""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from sisyphus.constants import (
    HEADER_TUS_RESUMABLE,
    HEADER_UPLOAD_OFFSET,
    OFFSET_CONTENT_TYPE,
    TUS_VERSION,
)
from sisyphus.models import ChunkDescriptor
from sisyphus.upload.exceptions import ChunkTransmissionError
from sisyphus.upload.file_access import FileAccessor

logger = logging.getLogger(__name__)


class ChunkTransmitter:
    """Sends offset-addressed chunk writes for one file.

    Args:
        client: Shared HTTP client. Not owned; the caller closes it.
        file_path: Source file the chunks are read from.
        files: File accessor used to stream the chunk body.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        file_path: str | Path,
        files: FileAccessor | None = None,
    ) -> None:
        self._client = client
        self._file_path = Path(file_path)
        self._files = files or FileAccessor()

    async def transmit(self, resource_uri: str, chunk: ChunkDescriptor) -> int:
        """Send *chunk* to *resource_uri* and return the server's new offset.

        Raises:
            ChunkTransmissionError: On a non-2xx response, a transport
                error, or a 2xx response without a valid ``Upload-Offset``.
            FileChannelOpenError: If the source file cannot be opened.
        """
        headers = {
            HEADER_TUS_RESUMABLE: TUS_VERSION,
            HEADER_UPLOAD_OFFSET: str(chunk.byte_offset),
            "Content-Length": str(chunk.length),
            "Content-Type": OFFSET_CONTENT_TYPE,
        }

        async with self._files.open_range(
            self._file_path, chunk.byte_offset, chunk.length
        ) as body:
            try:
                response = await self._client.request(
                    "PATCH", resource_uri, content=body, headers=headers
                )
            except httpx.TransportError as exc:
                logger.debug("Chunk %d transport error: %r", chunk.index, exc)
                raise ChunkTransmissionError(
                    f"Transport error sending chunk {chunk.index}: {exc}"
                ) from exc

        logger.info("Status: %d, chunk %d", response.status_code, chunk.index)

        if not response.is_success:
            raise ChunkTransmissionError.from_response(
                f"Chunk {chunk.index} rejected", response
            )
        return self.offset_from_response(response, chunk.index)

    @staticmethod
    def offset_from_response(response: httpx.Response, chunk_index: int = 0) -> int:
        """Parse ``Upload-Offset`` from a successful response.

        Raises:
            ChunkTransmissionError: If the header is missing or not a
                non-negative integer.
        """
        raw = response.headers.get(HEADER_UPLOAD_OFFSET)
        if raw is None:
            raise ChunkTransmissionError.from_response(
                f"Chunk {chunk_index} response has no {HEADER_UPLOAD_OFFSET} header",
                response,
            )
        value = raw.strip()
        if not (value.isascii() and value.isdigit()):
            raise ChunkTransmissionError.from_response(
                f"Chunk {chunk_index} response has invalid "
                f"{HEADER_UPLOAD_OFFSET} {raw!r}",
                response,
            )
        return int(value)
