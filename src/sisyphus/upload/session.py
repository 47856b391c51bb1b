"""Upload session: resource creation and the in-order chunk loop.

Composes the upload primitives (file accessor, fingerprint generator,
chunk transmitter, retry policy) into one resumable upload of one file:

* ``POST`` to the endpoint to create the upload resource
* ``PATCH`` each chunk in ascending order, each wrapped by the retry policy
* Fold an immutable :class:`~sisyphus.models.UploadState` forward using the
  offset the server reports after every chunk
* Stop at the first permanent failure; later chunks are never attempted

The session holds no mutable progress of its own. Cancelling the task
that runs it abandons the in-flight attempt, closes the chunk's file
handle, and starts no further chunk.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import httpx

from sisyphus.constants import (
    HEADER_LOCATION,
    HEADER_MIME_TYPE,
    HEADER_TUS_RESUMABLE,
    HEADER_UPLOAD_LENGTH,
    HEADER_UPLOAD_METADATA,
    TUS_VERSION,
)
from sisyphus.models import ChunkDescriptor, RetryAttempt, UploadState, chunk_count
from sisyphus.upload.exceptions import ProtocolError, UploadConfigurationError, UploadError
from sisyphus.upload.file_access import FileAccessor
from sisyphus.upload.fingerprint import FingerprintGenerator
from sisyphus.upload.retry import RetryPolicy, SleepFn
from sisyphus.upload.transmitter import ChunkTransmitter

logger = logging.getLogger(__name__)


class UploadSession:
    """One resumable upload of one file.

    Usage::

        async with httpx.AsyncClient() as client:
            session = UploadSession(client, "https://tus.example/files/", path,
                                    chunk_size=1024 * 1024,
                                    retry_intervals=[0.5, 1.0, 2.0])
            final_offset = await session.run()

    Args:
        client: Shared HTTP client. Not owned by the session.
        endpoint: URL the creation ``POST`` is sent to.
        file_path: File to upload.
        chunk_size: Bytes per ``PATCH`` request; must be positive.
        retry_intervals: Delays in seconds between attempts of one chunk;
            must be non-empty.
        files: Optional file accessor (defaults to :class:`FileAccessor`).
        sleep: Awaitable timer for retry waits (defaults to ``asyncio.sleep``).
        progress: Optional observer, see :class:`UploadProgressTracker`.

    Raises:
        RetryConfigurationError: If *retry_intervals* is empty or negative.
        UploadConfigurationError: If *chunk_size* is not positive.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        endpoint: str,
        file_path: str | Path,
        chunk_size: int,
        retry_intervals: Sequence[float],
        files: FileAccessor | None = None,
        sleep: SleepFn = asyncio.sleep,
        progress: Any | None = None,
    ) -> None:
        if chunk_size <= 0:
            raise UploadConfigurationError(
                f"chunk_size must be positive, got {chunk_size}"
            )

        self._client = client
        self._endpoint = endpoint
        self._file_path = Path(file_path)
        self._chunk_size = chunk_size
        self._files = files or FileAccessor()
        self._fingerprints = FingerprintGenerator(self._files)
        self._transmitter = ChunkTransmitter(client, self._file_path, self._files)
        self._progress = progress
        self._retry = RetryPolicy(retry_intervals, sleep=sleep, on_retry=self._on_retry)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def file_path(self) -> Path:
        return self._file_path

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def retry_intervals(self) -> tuple[float, ...]:
        return self._retry.intervals

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def run(self) -> int:
        """Create the upload resource and send every chunk.

        Returns:
            The final offset reported by the server.
        """
        state = await self.create()
        return await self.upload_all(state)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def create(self) -> UploadState:
        """Create the upload resource.

        Returns:
            The initial state, positioned at offset 0.

        Raises:
            ProtocolError: On a non-2xx response or a missing ``Location``.
            FileSizeReadError, FileMetadataReadError: If file attributes
                cannot be read.
        """
        file_size = self._files.size(self._file_path)
        headers = {
            HEADER_TUS_RESUMABLE: TUS_VERSION,
            HEADER_UPLOAD_LENGTH: str(file_size),
            HEADER_UPLOAD_METADATA: self._fingerprints.metadata_header(self._file_path),
        }
        content_type = self._files.probe_content_type(self._file_path)
        if content_type:
            headers[HEADER_MIME_TYPE] = content_type

        try:
            response = await self._client.post(self._endpoint, headers=headers)
        except httpx.TransportError as exc:
            logger.error("Upload creation for %s failed: %r", self._file_path, exc)
            raise ProtocolError(f"Could not reach {self._endpoint}: {exc}") from exc

        if not response.is_success:
            error = ProtocolError.from_response("Upload creation rejected", response)
            logger.error("TUS error response: %s", error)
            raise error

        location = response.headers.get(HEADER_LOCATION)
        if not location:
            raise ProtocolError.from_response(
                f"Upload creation response has no {HEADER_LOCATION} header",
                response,
            )

        resource_uri = str(httpx.URL(self._endpoint).join(location))
        logger.info(
            "Created upload %s for %s (%d bytes)",
            resource_uri,
            self._file_path,
            file_size,
        )
        return UploadState(resource_uri=resource_uri, file_size=file_size)

    def chunk(self, index: int, file_size: int) -> ChunkDescriptor:
        return ChunkDescriptor.for_index(index, self._chunk_size, file_size)

    def chunk_count(self, file_size: int) -> int:
        return chunk_count(file_size, self._chunk_size)

    async def upload_chunk(self, state: UploadState, index: int) -> UploadState:
        """Send chunk *index* (with retries) and return the advanced state.

        Raises:
            ProtocolError: If the chunk exhausts its retries, or the server
                reports an offset that moves backwards or past the file end.
        """
        chunk = self.chunk(index, state.file_size)
        logger.debug(
            "Sending chunk %d: offset=%d length=%d",
            chunk.index,
            chunk.byte_offset,
            chunk.length,
        )

        offset = await self._retry.run(
            lambda: self._transmitter.transmit(state.resource_uri, chunk),
            chunk_index=index,
        )

        if offset < state.next_offset or offset > state.file_size:
            raise ProtocolError(
                f"Server reported offset {offset} for chunk {index}; expected a "
                f"value between {state.next_offset} and {state.file_size}"
            )

        if self._progress is not None:
            self._progress.chunk_uploaded(index, offset)
        return state.advance(offset)

    async def upload_all(self, state: UploadState) -> int:
        """Send every chunk in ascending order, stopping at the first failure.

        Returns:
            The final offset reported by the server.
        """
        total = self.chunk_count(state.file_size)
        if self._progress is not None:
            self._progress.started(state.file_size, total)

        try:
            for index in range(total):
                state = await self.upload_chunk(state, index)
        except asyncio.CancelledError:
            logger.warning(
                "Upload of %s cancelled at offset %d (%d/%d chunks)",
                self._file_path,
                state.next_offset,
                state.chunks_completed,
                total,
            )
            raise
        except UploadError as exc:
            if self._progress is not None:
                self._progress.failed(str(exc))
            raise

        if not state.complete:
            logger.warning(
                "Upload of %s ended at offset %d of %d bytes; server kept a short upload",
                self._file_path,
                state.next_offset,
                state.file_size,
            )
            return state.next_offset

        logger.info(
            "Upload of %s complete: %d bytes in %d chunks",
            self._file_path,
            state.next_offset,
            state.chunks_completed,
        )
        return state.next_offset

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _on_retry(self, chunk_index: int, attempt: RetryAttempt, delay: float) -> None:
        if self._progress is not None:
            self._progress.chunk_retrying(chunk_index, attempt.attempt_number, delay)
