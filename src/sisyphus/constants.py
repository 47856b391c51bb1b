"""Project-wide named constants.

Header names follow the tus 1.0 resumable upload protocol. Default sizes
are chosen to keep one chunk comfortably in memory per session.
"""

TUS_VERSION: str = "1.0.0"

HEADER_TUS_RESUMABLE = "Tus-Resumable"
HEADER_UPLOAD_LENGTH = "Upload-Length"
HEADER_UPLOAD_METADATA = "Upload-Metadata"
HEADER_UPLOAD_OFFSET = "Upload-Offset"
HEADER_MIME_TYPE = "Mime-Type"
HEADER_LOCATION = "Location"

OFFSET_CONTENT_TYPE = "application/offset+octet-stream"

# 1 MiB per PATCH request
DEFAULT_CHUNK_SIZE: int = 1024 * 1024

# Read granularity when streaming a chunk body from disk
READ_BLOCK_SIZE: int = 64 * 1024

DEFAULT_RETRY_INTERVALS_MS: tuple[int, ...] = (500, 1000, 2000, 5000)

DEFAULT_TIMEOUT_SECONDS: float = 30.0
