"""HTTP client construction for upload sessions.

Sessions never create or close their client; the caller builds one here
(or brings its own ``httpx.AsyncClient``) and may share it across
concurrent sessions for different files.
"""

from __future__ import annotations

import logging

import httpx

from sisyphus.models import UploadConfig

logger = logging.getLogger(__name__)


def build_headers(config: UploadConfig) -> dict[str, str]:
    """Default request headers: configured extras plus bearer auth if a token is set."""
    headers = dict(config.headers)
    if config.token:
        headers["Authorization"] = f"Bearer {config.token}"
    return headers


def create_http_client(
    config: UploadConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Build an ``httpx.AsyncClient`` for *config*.

    Args:
        config: Upload configuration (timeout, headers, token).
        transport: Optional transport override, e.g. ``httpx.MockTransport``.

    Returns:
        A client the caller must close (``async with`` or ``aclose()``).
    """
    logger.debug(
        "Creating HTTP client (timeout=%.1fs, auth=%s)",
        config.timeout_seconds,
        "bearer" if config.token else "none",
    )
    return httpx.AsyncClient(
        headers=build_headers(config),
        timeout=httpx.Timeout(config.timeout_seconds),
        follow_redirects=False,
        transport=transport,
    )
