"""Resumable chunked file upload client."""

__version__ = "0.1.0"

from sisyphus.models import ChunkDescriptor, RetryAttempt, UploadConfig, UploadState

__all__ = [
    "ChunkDescriptor",
    "RetryAttempt",
    "UploadConfig",
    "UploadState",
    "__version__",
]
