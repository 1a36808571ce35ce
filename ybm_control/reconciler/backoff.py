"""
Retry/Backoff Driver — runs a probe on a constant interval until it reports
a terminal outcome or the policy's maximum duration runs out.

Fixed interval, no jitter. The deadline is checked after each sleep, so with
interval I and maximum D the probe runs at 0, I, 2I, ... while elapsed < D,
and a timeout is reported no later than D + I after the first attempt.

Cancellation: both the probe call and the sleep between attempts are raced
against `cancel_event`, so setting it stops the driver at once, even while a
status read is in flight. The abandoned read is cancelled. Task
cancellation (asyncio.CancelledError) propagates unchanged.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from ybm_control.models.reconciler import OutcomeKind, ProbeOutcome, RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

Probe = Callable[[], Awaitable[ProbeOutcome]]
Clock = Callable[[], float]
Sleeper = Callable[[float, Optional[asyncio.Event]], Awaitable[bool]]


class DeadlineExceeded(Exception):
    """The maximum duration elapsed before a terminal outcome."""

    def __init__(self, attempts: int, elapsed: float, last_reason: str):
        super().__init__(
            f"no terminal outcome after {attempts} attempts in {elapsed:.0f}s"
        )
        self.attempts = attempts
        self.elapsed = elapsed
        self.last_reason = last_reason


class ProbeFailed(Exception):
    """The probe classified an attempt as fatal."""

    def __init__(self, outcome: ProbeOutcome, attempts: int):
        super().__init__(outcome.reason)
        self.outcome = outcome
        self.attempts = attempts


class PollCancelled(Exception):
    """The cancellation signal was set while polling."""

    def __init__(self, attempts: int, last_reason: str = ""):
        super().__init__("polling cancelled")
        self.attempts = attempts
        self.last_reason = last_reason


class CancelSignal(Exception):
    """The cancellation signal was set before the awaited work finished."""


async def cancellable(work: Awaitable[T], cancel_event: Optional[asyncio.Event] = None) -> T:
    """
    Await `work`, abandoning it as soon as `cancel_event` is set.

    The abandoned work is cancelled and awaited before CancelSignal is
    raised, so nothing keeps running in the background. Work that finishes
    in the same step as the signal still returns its result.
    """
    if cancel_event is None:
        return await work
    if cancel_event.is_set():
        if asyncio.iscoroutine(work):
            work.close()
        raise CancelSignal()

    task = asyncio.ensure_future(work)
    signal = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait({task, signal}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        signal.cancel()
        if not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    if task in done:
        return task.result()
    raise CancelSignal()


async def wait_interval(seconds: float, cancel_event: Optional[asyncio.Event] = None) -> bool:
    """Sleep for `seconds`. Returns True if cancel_event was set meanwhile."""
    if cancel_event is None:
        await asyncio.sleep(seconds)
        return False
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
        return True
    except asyncio.TimeoutError:
        return False


async def run_until_terminal(
    policy: RetryPolicy,
    probe: Probe,
    *,
    cancel_event: Optional[asyncio.Event] = None,
    clock: Clock = time.monotonic,
    sleep: Sleeper = wait_interval,
) -> int:
    """
    Run `probe` until it returns done. Returns the number of attempts.

    Raises ProbeFailed on a fatal outcome, DeadlineExceeded when the policy's
    maximum duration elapses, PollCancelled when cancel_event is set.
    """
    started = clock()
    attempts = 0
    last_reason = ""

    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise PollCancelled(attempts, last_reason)

        attempts += 1
        try:
            outcome = await cancellable(probe(), cancel_event)
        except CancelSignal:
            raise PollCancelled(attempts, last_reason)
        logger.debug(
            "Probe attempt %d: %s %s (%.0fs elapsed)",
            attempts,
            outcome.kind.value,
            outcome.reason,
            clock() - started,
        )

        if outcome.kind == OutcomeKind.DONE:
            return attempts
        if outcome.kind == OutcomeKind.FATAL:
            raise ProbeFailed(outcome, attempts)
        last_reason = outcome.reason

        if await sleep(policy.interval_seconds, cancel_event):
            raise PollCancelled(attempts, last_reason)

        elapsed = clock() - started
        if elapsed >= policy.max_duration_seconds:
            raise DeadlineExceeded(attempts, elapsed, last_reason)
