"""Shared pytest fixtures for the upload client tests.

Provides a fake tus server (served through ``httpx.MockTransport``), a
file factory, a recording sleep, and keyring isolation for all test
modules.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import aiofiles
import httpx
import pytest

ENDPOINT = "https://tus.test/files/"


@dataclass
class RecordedRequest:
    method: str
    url: str
    headers: httpx.Headers
    body: bytes


class FakeTusServer:
    """Minimal in-memory tus server.

    Attributes:
        create_status: Status returned for the creation POST.
        location: Location header for the creation POST (``None`` omits it).
        patch_failures: Statuses returned, in order, before PATCHes are accepted.
        fail_offsets: Request offsets whose PATCH always fails with 500.
        omit_offset: Accept PATCHes but leave out the Upload-Offset header.
        offset_override: Report this offset instead of the real one.
    """

    def __init__(self) -> None:
        self.create_status = 201
        self.location: str | None = "/files/abc123"
        self.patch_failures: list[int] = []
        self.fail_offsets: set[int] = set()
        self.omit_offset = False
        self.offset_override: int | None = None
        self.requests: list[RecordedRequest] = []
        self.received = bytearray()

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = request.content
        self.requests.append(
            RecordedRequest(request.method, str(request.url), request.headers, body)
        )

        if request.method == "POST":
            headers = {"Location": self.location} if self.location else {}
            text = "created" if self.create_status < 300 else "rejected"
            return httpx.Response(self.create_status, headers=headers, text=text)

        offset = int(request.headers["Upload-Offset"])
        if offset in self.fail_offsets:
            return httpx.Response(500, text="chunk store unavailable")
        if self.patch_failures:
            return httpx.Response(self.patch_failures.pop(0), text="try again")

        self.received.extend(body)
        new_offset = offset + len(body)
        if self.offset_override is not None:
            new_offset = self.offset_override
        if self.omit_offset:
            return httpx.Response(204)
        return httpx.Response(204, headers={"Upload-Offset": str(new_offset)})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def patch_requests(self) -> list[RecordedRequest]:
        return [r for r in self.requests if r.method == "PATCH"]

    @property
    def create_requests(self) -> list[RecordedRequest]:
        return [r for r in self.requests if r.method == "POST"]


@pytest.fixture(autouse=True)
def isolated_keyring(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> dict:
    """Replace the system keyring with an in-memory dict and clear env tokens."""
    store: dict[tuple[str, str], str] = {}

    monkeypatch.setattr("keyring.get_password", lambda s, k: store.get((s, k)))
    monkeypatch.setattr(
        "keyring.set_password", lambda s, k, v: store.__setitem__((s, k), v)
    )
    monkeypatch.setattr("keyring.delete_password", lambda s, k: store.pop((s, k)))
    monkeypatch.delenv("SISYPHUS_TOKEN", raising=False)
    monkeypatch.chdir(tmp_path)
    return store


@pytest.fixture
def tus_server() -> FakeTusServer:
    return FakeTusServer()


@pytest.fixture
async def http_client(tus_server: FakeTusServer):
    async with httpx.AsyncClient(transport=tus_server.transport) as client:
        yield client


@pytest.fixture
def make_file(tmp_path: Path):
    """Factory writing *content* (or *size* patterned bytes) to a temp file."""

    def _make(
        name: str = "payload.bin",
        content: bytes | None = None,
        size: int | None = None,
    ) -> Path:
        if content is None:
            content = bytes(i % 251 for i in range(size or 0))
        path = tmp_path / name
        path.write_bytes(content)
        return path

    return _make


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps: list[float]):
    """Async sleep that records delays instead of waiting."""

    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return _sleep


@pytest.fixture
def opened_handles(monkeypatch: pytest.MonkeyPatch) -> list:
    """Record every file handle that ``aiofiles.open`` hands out."""
    handles: list = []
    real_open = aiofiles.open

    async def _tracking_open(*args, **kwargs):
        handle = await real_open(*args, **kwargs)
        handles.append(handle)
        return handle

    monkeypatch.setattr("aiofiles.open", _tracking_open)
    return handles
