"""Rich progress tracking for a single upload session.

Two rows:

* **Bytes** -- offset accepted by the server out of the file size
* **Status text** -- current chunk, retry waits, or the failure message
"""

from __future__ import annotations

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)


class UploadProgressTracker:
    """Session observer that renders upload progress with Rich.

    Usage::

        tracker = UploadProgressTracker("video.mp4")
        with tracker:
            await UploadSession(..., progress=tracker).run()

    Or without context manager::

        tracker.start()
        # ... run the session ...
        tracker.stop()
    """

    def __init__(self, file_name: str, console: Console | None = None) -> None:
        self._file_name = _truncate_name(file_name)
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            TextColumn("{task.fields[status]}", style="dim"),
            console=console,
        )
        self._task: TaskID | None = None
        self._total_chunks = 0

        self._stats: dict[str, int] = {
            "chunks": 0,
            "retries": 0,
            "failed": 0,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the Rich progress display."""
        self._progress.start()
        self._task = self._progress.add_task(
            f"[green]{self._file_name}",
            total=None,
            status="creating upload...",
        )

    def stop(self) -> None:
        """Stop the Rich progress display."""
        self._progress.stop()

    def __enter__(self) -> UploadProgressTracker:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Session events
    # ------------------------------------------------------------------

    def started(self, file_size: int, total_chunks: int) -> None:
        self._total_chunks = total_chunks
        if self._task is not None:
            self._progress.update(
                self._task,
                total=file_size,
                completed=0,
                status=f"chunk 1/{total_chunks}",
            )

    def chunk_uploaded(self, chunk_index: int, offset: int) -> None:
        self._stats["chunks"] += 1
        if self._task is not None:
            self._progress.update(
                self._task,
                completed=offset,
                status=f"chunk {chunk_index + 1}/{self._total_chunks}",
            )

    def chunk_retrying(self, chunk_index: int, attempt: int, delay: float) -> None:
        self._stats["retries"] += 1
        if self._task is not None:
            self._progress.update(
                self._task,
                status=(
                    f"[yellow]chunk {chunk_index + 1} attempt {attempt + 1} "
                    f"failed, retrying in {delay:.1f}s[/yellow]"
                ),
            )

    def failed(self, error: str) -> None:
        self._stats["failed"] += 1
        if self._task is not None:
            self._progress.update(self._task, status=f"[red]FAIL[/red] {error}")

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    @property
    def stats(self) -> dict[str, int]:
        """Return a copy of the current statistics."""
        return dict(self._stats)


def _truncate_name(name: str, max_len: int = 40) -> str:
    """Truncate a file name for display, keeping its tail."""
    if len(name) <= max_len:
        return name
    return "..." + name[-(max_len - 3) :]
