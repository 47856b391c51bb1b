"""Tests for the Rich upload progress tracker."""

from __future__ import annotations

import io

from rich.console import Console

from sisyphus.upload.progress import UploadProgressTracker, _truncate_name


def _console() -> Console:
    return Console(file=io.StringIO(), force_terminal=False, width=120)


class TestUploadProgressTracker:

    def test_counts_session_events(self):
        tracker = UploadProgressTracker("payload.bin", console=_console())
        with tracker:
            tracker.started(2600, 3)
            tracker.chunk_uploaded(0, 1000)
            tracker.chunk_retrying(1, 0, 0.5)
            tracker.chunk_uploaded(1, 2000)
            tracker.chunk_uploaded(2, 2600)

        assert tracker.stats == {"chunks": 3, "retries": 1, "failed": 0}

    def test_failure_is_counted(self):
        tracker = UploadProgressTracker("payload.bin", console=_console())
        with tracker:
            tracker.started(10, 1)
            tracker.failed("Chunk 0 failed after 2 attempts")

        assert tracker.stats["failed"] == 1

    def test_events_before_start_are_safe(self):
        tracker = UploadProgressTracker("payload.bin", console=_console())
        tracker.chunk_uploaded(0, 10)
        assert tracker.stats["chunks"] == 1

    def test_stats_is_a_copy(self):
        tracker = UploadProgressTracker("payload.bin", console=_console())
        tracker.stats["chunks"] = 99
        assert tracker.stats["chunks"] == 0


def test_truncate_name_keeps_tail():
    name = "a" * 50 + ".mp4"
    truncated = _truncate_name(name)
    assert len(truncated) == 40
    assert truncated.startswith("...")
    assert truncated.endswith(".mp4")


def test_truncate_name_short_unchanged():
    assert _truncate_name("short.bin") == "short.bin"
