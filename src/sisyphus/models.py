"""Data models for the sisyphus upload client."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from sisyphus.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_RETRY_INTERVALS_MS,
    DEFAULT_TIMEOUT_SECONDS,
)


@dataclass
class UploadConfig:
    """Configuration for a resumable upload session.

    Retry intervals are stored in milliseconds to keep config files
    readable; :attr:`retry_intervals` converts them to seconds for
    ``asyncio.sleep``.
    """

    endpoint: str
    chunk_size: int = DEFAULT_CHUNK_SIZE
    retry_intervals_ms: list[int] = field(
        default_factory=lambda: list(DEFAULT_RETRY_INTERVALS_MS)
    )
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    headers: dict[str, str] = field(default_factory=dict)
    token: str | None = None

    @property
    def retry_intervals(self) -> tuple[float, ...]:
        """Retry delays in seconds, in the order they are consulted."""
        return tuple(ms / 1000.0 for ms in self.retry_intervals_ms)


@dataclass(frozen=True, slots=True)
class ChunkDescriptor:
    """Byte range of one chunk. Derived from index, chunk size and file size."""

    index: int
    byte_offset: int
    length: int

    @classmethod
    def for_index(cls, index: int, chunk_size: int, file_size: int) -> ChunkDescriptor:
        byte_offset = index * chunk_size
        return cls(
            index=index,
            byte_offset=byte_offset,
            length=max(0, min(chunk_size, file_size - byte_offset)),
        )


def chunk_count(file_size: int, chunk_size: int) -> int:
    """Number of chunks needed for *file_size* bytes.

    Ceiling division; an empty file is still sent as one empty chunk.
    """
    if file_size == 0:
        return 1
    return -(-file_size // chunk_size)


@dataclass(frozen=True, slots=True)
class UploadState:
    """Immutable progress of one upload, folded forward chunk by chunk."""

    resource_uri: str
    file_size: int
    next_offset: int = 0
    chunks_completed: int = 0

    def advance(self, offset: int) -> UploadState:
        """Return the state after the server accepted bytes up to *offset*."""
        return replace(
            self,
            next_offset=offset,
            chunks_completed=self.chunks_completed + 1,
        )

    @property
    def complete(self) -> bool:
        return self.next_offset >= self.file_size


@dataclass(frozen=True, slots=True)
class RetryAttempt:
    """One attempt at transmitting a chunk.

    ``attempt_number`` is 0-based; ``last_failure`` is the error that
    ended this attempt, if any.
    """

    attempt_number: int
    last_failure: Exception | None = None
