"""End-to-end tests for UploadSession against a fake tus server."""

from __future__ import annotations

import asyncio
import logging
from unittest.mock import MagicMock

import httpx
import pytest

from conftest import ENDPOINT
from sisyphus.upload.exceptions import (
    FileSizeReadError,
    ProtocolError,
    RetryConfigurationError,
    UploadConfigurationError,
)
from sisyphus.upload.fingerprint import FingerprintGenerator, decode_metadata
from sisyphus.upload.session import UploadSession


def _session(client, path, chunk_size=1000, intervals=(0.01,), **kwargs) -> UploadSession:
    return UploadSession(
        client,
        ENDPOINT,
        path,
        chunk_size=chunk_size,
        retry_intervals=list(intervals),
        **kwargs,
    )


# ======================================================================
# Construction
# ======================================================================


class TestConstruction:

    async def test_empty_intervals_rejected_before_any_request(self, http_client, tus_server, make_file):
        path = make_file(size=10)
        with pytest.raises(RetryConfigurationError):
            _session(http_client, path, intervals=())
        assert tus_server.requests == []

    @pytest.mark.parametrize("chunk_size", [0, -1])
    async def test_non_positive_chunk_size_rejected(self, http_client, make_file, chunk_size):
        with pytest.raises(UploadConfigurationError):
            _session(http_client, make_file(size=10), chunk_size=chunk_size)

    async def test_exposes_settings(self, http_client, make_file):
        session = _session(http_client, make_file(size=10), chunk_size=4, intervals=(1, 2))
        assert session.chunk_size == 4
        assert session.retry_intervals == (1.0, 2.0)
        assert session.chunk_count(10) == 3


# ======================================================================
# Resource creation
# ======================================================================


class TestCreate:

    async def test_create_headers(self, http_client, tus_server, make_file):
        path = make_file("notes.txt", size=2600)

        state = await _session(http_client, path).create()

        (request,) = tus_server.create_requests
        assert request.url == ENDPOINT
        assert request.headers["Upload-Length"] == "2600"
        assert request.headers["Tus-Resumable"] == "1.0.0"
        assert request.headers["Mime-Type"] == "text/plain"
        assert decode_metadata(request.headers["Upload-Metadata"]) == {
            "filename": "notes.txt",
            "fingerprint": FingerprintGenerator().fingerprint(path),
        }
        assert state.resource_uri == "https://tus.test/files/abc123"
        assert state.file_size == 2600
        assert state.next_offset == 0

    async def test_mime_type_omitted_when_unknown(self, http_client, tus_server, make_file):
        path = make_file("blob.zzqx", size=5)
        await _session(http_client, path).create()
        assert "Mime-Type" not in tus_server.create_requests[0].headers

    async def test_absolute_location_used_as_is(self, http_client, tus_server, make_file):
        tus_server.location = "https://storage.test/uploads/xyz"
        state = await _session(http_client, make_file(size=5)).create()
        assert state.resource_uri == "https://storage.test/uploads/xyz"

    async def test_non_2xx_raises_protocol_error(self, http_client, tus_server, make_file):
        tus_server.create_status = 413

        with pytest.raises(ProtocolError) as info:
            await _session(http_client, make_file(size=5)).run()

        assert info.value.status_code == 413
        assert info.value.body == "rejected"
        assert tus_server.patch_requests == []

    async def test_missing_location_raises_protocol_error(self, http_client, tus_server, make_file):
        tus_server.location = None

        with pytest.raises(ProtocolError, match="no Location"):
            await _session(http_client, make_file(size=5)).create()

        assert len(tus_server.create_requests) == 1

    async def test_missing_file_raises_before_any_request(self, http_client, tus_server, tmp_path):
        with pytest.raises(FileSizeReadError):
            await _session(http_client, tmp_path / "gone.bin").run()
        assert tus_server.requests == []


# ======================================================================
# Chunk loop
# ======================================================================


class TestUploadAll:

    async def test_end_to_end(self, http_client, tus_server, make_file):
        path = make_file(size=2600)

        final_offset = await _session(http_client, path, chunk_size=1000).run()

        assert final_offset == 2600
        assert tus_server.create_requests[0].headers["Upload-Length"] == "2600"
        patches = tus_server.patch_requests
        assert [r.headers["Upload-Offset"] for r in patches] == ["0", "1000", "2000"]
        assert [r.headers["Content-Length"] for r in patches] == ["1000", "1000", "600"]
        assert all(r.url == "https://tus.test/files/abc123" for r in patches)
        assert bytes(tus_server.received) == path.read_bytes()

    async def test_exact_multiple_sends_no_extra_chunk(self, http_client, tus_server, make_file):
        path = make_file(size=4096)

        assert await _session(http_client, path, chunk_size=1024).run() == 4096
        assert len(tus_server.patch_requests) == 4

    async def test_empty_file_sends_one_empty_chunk(self, http_client, tus_server, make_file):
        path = make_file(content=b"")

        assert await _session(http_client, path).run() == 0

        (patch,) = tus_server.patch_requests
        assert patch.headers["Upload-Offset"] == "0"
        assert patch.headers["Content-Length"] == "0"
        assert patch.body == b""

    async def test_retries_failed_chunk(self, http_client, tus_server, make_file, fake_sleep, sleeps):
        path = make_file(size=2600)
        tus_server.patch_failures = [500, 502]

        session = _session(http_client, path, intervals=(0.01, 0.02, 0.03), sleep=fake_sleep)

        assert await session.run() == 2600
        assert sleeps == [0.01, 0.02]
        assert [r.headers["Upload-Offset"] for r in tus_server.patch_requests] == [
            "0", "0", "0", "1000", "2000",
        ]

    async def test_fail_fast_on_exhausted_chunk(self, http_client, tus_server, make_file, fake_sleep):
        path = make_file(size=2600)
        tus_server.fail_offsets = {1000}

        with pytest.raises(ProtocolError) as info:
            await _session(http_client, path, intervals=(0.01,), sleep=fake_sleep).run()

        assert info.value.status_code == 500
        assert info.value.body == "chunk store unavailable"
        offsets = [r.headers["Upload-Offset"] for r in tus_server.patch_requests]
        assert offsets == ["0", "1000", "1000"]

    async def test_server_offset_is_authoritative(self, http_client, tus_server, make_file):
        path = make_file(size=2600)
        session = _session(http_client, path)
        state = await session.create()
        tus_server.offset_override = 700

        state = await session.upload_chunk(state, 0)

        assert state.next_offset == 700
        assert state.chunks_completed == 1

    async def test_offset_past_file_end_is_protocol_error(self, http_client, tus_server, make_file):
        path = make_file(size=100)
        tus_server.offset_override = 101

        with pytest.raises(ProtocolError, match="offset 101"):
            await _session(http_client, path).run()

    async def test_offset_moving_backwards_is_protocol_error(self, http_client, tus_server, make_file):
        path = make_file(size=2600)
        session = _session(http_client, path)
        state = (await session.create()).advance(1000)
        tus_server.offset_override = 500

        with pytest.raises(ProtocolError):
            await session.upload_chunk(state, 1)

    async def test_progress_observer(self, http_client, tus_server, make_file, fake_sleep):
        path = make_file(size=2600)
        tus_server.patch_failures = [503]
        progress = MagicMock()

        await _session(http_client, path, sleep=fake_sleep, progress=progress).run()

        progress.started.assert_called_once_with(2600, 3)
        assert [c.args for c in progress.chunk_uploaded.call_args_list] == [
            (0, 1000), (1, 2000), (2, 2600),
        ]
        progress.chunk_retrying.assert_called_once_with(0, 0, 0.01)
        progress.failed.assert_not_called()

    async def test_progress_observer_sees_failure(self, http_client, tus_server, make_file, fake_sleep):
        tus_server.fail_offsets = {0}
        progress = MagicMock()

        with pytest.raises(ProtocolError):
            await _session(
                http_client, make_file(size=10), sleep=fake_sleep, progress=progress
            ).run()

        progress.failed.assert_called_once()


# ======================================================================
# Cancellation
# ======================================================================


class TestCancellation:

    async def test_cancel_during_retry_wait_stops_the_session(
        self, http_client, tus_server, make_file
    ):
        path = make_file(size=2600)
        tus_server.fail_offsets = {1000}
        waiting = asyncio.Event()

        async def blocking_sleep(delay: float) -> None:
            waiting.set()
            await asyncio.Event().wait()

        session = _session(http_client, path, intervals=(60,), sleep=blocking_sleep)
        task = asyncio.create_task(session.run())
        await waiting.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        offsets = [r.headers["Upload-Offset"] for r in tus_server.patch_requests]
        assert offsets == ["0", "1000"]

    async def test_cancel_mid_request_releases_file_and_stops(
        self, tus_server, make_file, opened_handles
    ):
        path = make_file(size=2600)
        offsets: list[str] = []
        in_flight = asyncio.Event()

        async def stall_second_chunk(request: httpx.Request) -> httpx.Response:
            if request.method == "PATCH":
                offsets.append(request.headers["Upload-Offset"])
                if request.headers["Upload-Offset"] == "1000":
                    in_flight.set()
                    await asyncio.Event().wait()
            return tus_server.handler(request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(stall_second_chunk)) as client:
            task = asyncio.create_task(_session(client, path).run())
            await in_flight.wait()

            assert len(opened_handles) == 2
            assert opened_handles[0].closed
            assert not opened_handles[1].closed

            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        assert all(handle.closed for handle in opened_handles)
        assert len(opened_handles) == 2
        assert offsets == ["0", "1000"]

    async def test_short_final_offset_is_returned_with_warning(
        self, http_client, tus_server, make_file, caplog
    ):
        path = make_file(size=2600)
        tus_server.offset_override = 2500

        with caplog.at_level(logging.WARNING, logger="sisyphus.upload.session"):
            final_offset = await _session(http_client, path).run()

        assert final_offset == 2500
        assert "ended at offset 2500 of 2600 bytes" in caplog.text

    async def test_independent_sessions_share_a_client(self, http_client, tus_server, make_file):
        first = make_file("one.bin", size=1500)
        second = make_file("two.bin", size=700)

        results = await asyncio.gather(
            _session(http_client, first).run(),
            _session(http_client, second).run(),
        )

        assert results == [1500, 700]
