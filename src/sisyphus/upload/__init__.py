"""Upload engine for the tus resumable upload protocol.

Public API
----------
.. autoclass:: UploadSession
.. autoclass:: ChunkTransmitter
.. autoclass:: RetryPolicy
.. autoclass:: FingerprintGenerator
.. autoclass:: FileAccessor
.. autoclass:: UploadProgressTracker
"""

from sisyphus.upload.client import create_http_client
from sisyphus.upload.exceptions import (
    ChunkTransmissionError,
    FileAccessError,
    FileChannelOpenError,
    FileMetadataReadError,
    FileSizeReadError,
    ProtocolError,
    RetryConfigurationError,
    UploadConfigurationError,
    UploadError,
)
from sisyphus.upload.file_access import FileAccessor
from sisyphus.upload.fingerprint import FingerprintGenerator, decode_metadata, encode_metadata
from sisyphus.upload.progress import UploadProgressTracker
from sisyphus.upload.retry import RetryPolicy
from sisyphus.upload.session import UploadSession
from sisyphus.upload.transmitter import ChunkTransmitter

__all__ = [
    "ChunkTransmissionError",
    "ChunkTransmitter",
    "FileAccessError",
    "FileAccessor",
    "FileChannelOpenError",
    "FileMetadataReadError",
    "FileSizeReadError",
    "FingerprintGenerator",
    "ProtocolError",
    "RetryConfigurationError",
    "RetryPolicy",
    "UploadConfigurationError",
    "UploadError",
    "UploadProgressTracker",
    "UploadSession",
    "create_http_client",
    "decode_metadata",
    "encode_metadata",
]
