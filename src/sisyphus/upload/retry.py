"""Retry policy for chunk transmissions.

Drives a caller-supplied coroutine through ``tenacity.AsyncRetrying`` with
one wait per configured interval, while a :class:`ChunkRetryMachine`
records where the chunk is in its lifecycle:

* attempt 0 runs immediately;
* after attempt ``n`` fails, wait ``intervals[n]`` and run attempt ``n + 1``;
* once attempt ``len(intervals)`` fails, the chunk is ``failed`` and a
  :class:`ProtocolError` carrying the last failure is raised.

Only :class:`ChunkTransmissionError` is retried. Anything else (file
errors, fatal protocol errors, cancellation) propagates on the spot.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_chain,
    wait_fixed,
)

from sisyphus.models import RetryAttempt
from sisyphus.upload.exceptions import (
    ChunkTransmissionError,
    ProtocolError,
    RetryConfigurationError,
)
from sisyphus.upload.fsm import ChunkRetryMachine, create_fsm

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[Any]]
RetryCallback = Callable[[int, RetryAttempt, float], None]


def validate_intervals(intervals: Sequence[float]) -> tuple[float, ...]:
    """Return *intervals* as a tuple, rejecting empty or negative sequences.

    Raises:
        RetryConfigurationError: If *intervals* is empty or holds a negative value.
    """
    result = tuple(float(i) for i in intervals)
    if not result:
        raise RetryConfigurationError(
            "retry_intervals must contain at least one delay"
        )
    negative = [i for i in result if i < 0]
    if negative:
        raise RetryConfigurationError(
            f"retry_intervals must be non-negative, got {negative}"
        )
    return result


class RetryPolicy:
    """Runs one chunk operation with the configured backoff sequence.

    Args:
        intervals: Delays in seconds, consulted in order after each failure.
        sleep: Awaitable timer; ``asyncio.sleep`` unless a test injects one.
        on_retry: Optional callback invoked before each wait with the
            chunk index, the failed attempt and the delay about to be taken.
    """

    def __init__(
        self,
        intervals: Sequence[float],
        sleep: SleepFn = asyncio.sleep,
        on_retry: RetryCallback | None = None,
    ) -> None:
        self._intervals = validate_intervals(intervals)
        self._sleep = sleep
        self._on_retry = on_retry

    @property
    def intervals(self) -> tuple[float, ...]:
        return self._intervals

    @property
    def max_attempts(self) -> int:
        return len(self._intervals) + 1

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        chunk_index: int = 0,
    ) -> T:
        """Run *operation* until it succeeds or the intervals run out.

        Returns:
            Whatever *operation* returned on its successful attempt.

        Raises:
            ProtocolError: After ``len(intervals) + 1`` failed attempts.
        """
        machine = create_fsm()
        retrying = AsyncRetrying(
            wait=wait_chain(*(wait_fixed(i) for i in self._intervals)),
            stop=stop_after_attempt(self.max_attempts),
            retry=retry_if_exception_type(ChunkTransmissionError),
            sleep=self._sleep,
            before_sleep=lambda state: self._before_sleep(state, chunk_index),
        )

        try:
            async for attempt in retrying:
                with attempt:
                    self._advance(machine)
                    result = await operation()
                    machine.succeed()
                    if machine.attempt_number > 0:
                        logger.info(
                            "Chunk %d succeeded on attempt %d",
                            chunk_index,
                            machine.attempt_number,
                        )
                    return result
        except RetryError as exc:
            machine.fail()
            failure = exc.last_attempt.exception()
            logger.error(
                "Chunk %d failed permanently after %d attempts: %s",
                chunk_index,
                self.max_attempts,
                failure,
            )
            raise ProtocolError.from_failure(
                f"Chunk {chunk_index} failed after {self.max_attempts} attempts",
                failure,
            ) from failure
        except BaseException:
            if machine.attempting.is_active:
                machine.fail()
            raise

        raise RuntimeError(f"Retry loop for chunk {chunk_index} ended without a result")

    @staticmethod
    def _advance(machine: ChunkRetryMachine) -> None:
        if machine.not_started.is_active:
            machine.begin()
        else:
            machine.retry()

    def _before_sleep(self, state: RetryCallState, chunk_index: int) -> None:
        failure = state.outcome.exception() if state.outcome else None
        delay = state.next_action.sleep if state.next_action else 0.0
        logger.warning(
            "Chunk %d attempt %d failed (%s); retrying in %.3fs",
            chunk_index,
            state.attempt_number - 1,
            failure,
            delay,
        )
        if self._on_retry is not None:
            self._on_retry(
                chunk_index, RetryAttempt(state.attempt_number - 1, failure), delay
            )
