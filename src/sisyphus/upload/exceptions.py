"""Error taxonomy for the upload engine.

File errors are fatal and never retried. :class:`ChunkTransmissionError`
describes a single failed attempt and is what the retry layer retries;
callers only ever see it wrapped in a :class:`ProtocolError` once the
configured retry intervals are exhausted.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any


class UploadError(Exception):
    """Base class for every error raised by the upload engine."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class UploadConfigurationError(UploadError, ValueError):
    """Raised when a session or config is built with invalid settings."""


class RetryConfigurationError(UploadConfigurationError):
    """Raised when the retry interval sequence is empty or negative."""


# ---------------------------------------------------------------------------
# File system
# ---------------------------------------------------------------------------


class FileAccessError(UploadError):
    """A local file operation failed. Always fatal for the session."""

    action = "access"

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        super().__init__(f"Could not {self.action} {self.path}")


class FileSizeReadError(FileAccessError):
    action = "read size of"


class FileMetadataReadError(FileAccessError):
    action = "read modification time of"


class FileChannelOpenError(FileAccessError):
    action = "open for reading"


# ---------------------------------------------------------------------------
# HTTP protocol
# ---------------------------------------------------------------------------


class _ResponseError(UploadError):
    """Error carrying the status, headers and body of an HTTP response."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        headers: Mapping[str, str] | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.headers: dict[str, str] = dict(headers or {})
        self.body = body

    @classmethod
    def from_response(cls, message: str, response: Any) -> _ResponseError:
        """Build the error from an ``httpx.Response``."""
        return cls(
            message,
            status_code=response.status_code,
            headers=response.headers,
            body=response.text,
        )

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (status {self.status_code})"


class ChunkTransmissionError(_ResponseError):
    """A single chunk attempt failed; the retry layer decides what happens next."""


class ProtocolError(_ResponseError):
    """Raised for a failed create, an exhausted chunk, or an invalid server offset."""

    @classmethod
    def from_failure(cls, message: str, failure: _ResponseError) -> ProtocolError:
        """Carry over status, headers and body from *failure*."""
        return cls(
            f"{message}: {failure.message}",
            status_code=failure.status_code,
            headers=failure.headers,
            body=failure.body,
        )
