"""Fingerprint and ``Upload-Metadata`` generation.

The fingerprint ``"<absolute path>-<size>-<mtime millis>"`` identifies one
version of a file. It must stay byte-for-byte stable while the three
inputs are unchanged, since servers use it to correlate upload attempts.

The metadata header encoding is the tus convention: ``key base64(value)``
pairs joined by commas, in insertion order.
"""

from __future__ import annotations

import base64
from collections.abc import Mapping
from pathlib import Path

from sisyphus.upload.file_access import FileAccessor


class FingerprintGenerator:
    """Derives identity strings and metadata from file attributes."""

    def __init__(self, files: FileAccessor | None = None) -> None:
        self._files = files or FileAccessor()

    def fingerprint(self, path: str | Path) -> str:
        path = Path(path)
        return "{}-{}-{}".format(
            path.absolute(),
            self._files.size(path),
            self._files.last_modified_millis(path),
        )

    def metadata(self, path: str | Path) -> dict[str, str]:
        """Return ``{"filename": ..., "fingerprint": ...}`` in that order."""
        path = Path(path)
        return {
            "filename": path.name,
            "fingerprint": self.fingerprint(path),
        }

    def metadata_header(self, path: str | Path) -> str:
        """Encoded ``Upload-Metadata`` value for *path*."""
        return encode_metadata(self.metadata(path))


def encode_metadata(metadata: Mapping[str, str]) -> str:
    """Encode *metadata* as ``key base64(value)`` pairs joined by commas."""
    return ",".join(
        f"{key} {base64.b64encode(value.encode('utf-8')).decode('ascii')}"
        for key, value in metadata.items()
    )


def decode_metadata(header: str) -> dict[str, str]:
    """Inverse of :func:`encode_metadata`.

    Keys without a value decode to an empty string.
    """
    result: dict[str, str] = {}
    for pair in header.split(","):
        pair = pair.strip()
        if not pair:
            continue
        key, _, encoded = pair.partition(" ")
        result[key] = base64.b64decode(encoded).decode("utf-8") if encoded else ""
    return result
