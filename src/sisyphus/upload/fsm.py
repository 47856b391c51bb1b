"""Per-chunk retry finite state machine.

Each chunk gets its own machine instance. It carries no side effects and
no timers; :class:`~sisyphus.upload.retry.RetryPolicy` advances it as
attempts start, succeed, or run out, and the machine rejects any
transition that the retry loop should never take (for example a second
success, or a retry after permanent failure).
"""

from __future__ import annotations

from statemachine import State, StateMachine


class ChunkRetryMachine(StateMachine):
    """Four-state lifecycle of one chunk transmission.

    States:
        not_started -- No attempt made yet.
        attempting  -- An attempt is in flight or waiting to be retried.
        succeeded   -- The server accepted the chunk.
        failed      -- Retry intervals exhausted, or a fatal error.
    """

    not_started = State("not_started", initial=True, value="not_started")
    attempting = State("attempting", value="attempting")
    succeeded = State("succeeded", final=True, value="succeeded")
    failed = State("failed", final=True, value="failed")

    begin = not_started.to(attempting)
    retry = attempting.to.itself()
    succeed = attempting.to(succeeded)
    fail = attempting.to(failed)

    def __init__(self) -> None:
        self.attempt_number = -1
        super().__init__()

    def on_begin(self) -> None:
        self.attempt_number = 0

    def on_retry(self) -> None:
        self.attempt_number += 1

    @property
    def is_finished(self) -> bool:
        return self.succeeded.is_active or self.failed.is_active


def create_fsm() -> ChunkRetryMachine:
    """Create a machine positioned at ``not_started``."""
    return ChunkRetryMachine()
