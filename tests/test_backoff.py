"""Tests for the retry/backoff driver."""

import asyncio
import time

import pytest

from conftest import FakeClock
from ybm_control.models.reconciler import FailureKind, ProbeOutcome, RetryPolicy
from ybm_control.reconciler.backoff import (
    CancelSignal,
    DeadlineExceeded,
    PollCancelled,
    ProbeFailed,
    cancellable,
    run_until_terminal,
    wait_interval,
)


def _make_probe(*outcomes):
    """Probe that replays outcomes in order; the last one repeats."""
    calls = []

    async def probe():
        calls.append(len(calls) + 1)
        index = min(len(calls), len(outcomes)) - 1
        return outcomes[index]

    probe.calls = calls
    return probe


class TestRunUntilTerminal:
    @pytest.mark.asyncio
    async def test_always_retry_times_out_after_three_attempts(self):
        """interval=10s, max=30s, probe never terminal: exactly 3 attempts, then timeout."""
        clock = FakeClock()
        probe = _make_probe(ProbeOutcome.retry("still running"))
        policy = RetryPolicy(interval_seconds=10, max_duration_seconds=30)

        with pytest.raises(DeadlineExceeded) as exc_info:
            await run_until_terminal(policy, probe, clock=clock, sleep=clock.sleep)

        assert len(probe.calls) == 3
        assert exc_info.value.attempts == 3
        assert exc_info.value.last_reason == "still running"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("interval,max_duration", [(10, 30), (10, 35), (7, 60), (30, 10)])
    async def test_timeout_overruns_by_at_most_one_interval(self, interval, max_duration):
        clock = FakeClock()
        probe = _make_probe(ProbeOutcome.retry("pending"))
        policy = RetryPolicy(interval_seconds=interval, max_duration_seconds=max_duration)

        with pytest.raises(DeadlineExceeded) as exc_info:
            await run_until_terminal(policy, probe, clock=clock, sleep=clock.sleep)

        assert exc_info.value.elapsed >= max_duration
        assert exc_info.value.elapsed <= max_duration + interval

    @pytest.mark.asyncio
    async def test_done_after_retries_returns_attempt_count(self):
        clock = FakeClock()
        probe = _make_probe(
            ProbeOutcome.retry("a"),
            ProbeOutcome.retry("b"),
            ProbeOutcome.done(),
        )
        policy = RetryPolicy(interval_seconds=10, max_duration_seconds=3600)

        attempts = await run_until_terminal(policy, probe, clock=clock, sleep=clock.sleep)

        assert attempts == 3
        assert clock.sleeps == [10, 10]

    @pytest.mark.asyncio
    async def test_immediate_done_does_not_sleep(self):
        clock = FakeClock()
        probe = _make_probe(ProbeOutcome.done())
        policy = RetryPolicy(max_duration_seconds=60)

        assert await run_until_terminal(policy, probe, clock=clock, sleep=clock.sleep) == 1
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_fatal_outcome_stops_immediately(self):
        clock = FakeClock()
        fatal = ProbeOutcome.fatal(FailureKind.OPERATION_FAILED, "the task failed")
        probe = _make_probe(fatal, ProbeOutcome.done())
        policy = RetryPolicy(max_duration_seconds=60)

        with pytest.raises(ProbeFailed) as exc_info:
            await run_until_terminal(policy, probe, clock=clock, sleep=clock.sleep)

        assert exc_info.value.outcome.failure == FailureKind.OPERATION_FAILED
        assert exc_info.value.attempts == 1
        assert len(probe.calls) == 1

    @pytest.mark.asyncio
    async def test_fatal_is_distinct_from_deadline(self):
        clock = FakeClock()
        probe = _make_probe(
            ProbeOutcome.retry("pending"),
            ProbeOutcome.fatal(FailureKind.STATUS_UNAVAILABLE, "no status"),
        )
        policy = RetryPolicy(interval_seconds=10, max_duration_seconds=600)

        with pytest.raises(ProbeFailed):
            await run_until_terminal(policy, probe, clock=clock, sleep=clock.sleep)


class TestCancellation:
    @pytest.mark.asyncio
    async def test_preset_cancel_runs_no_attempt(self):
        clock = FakeClock()
        probe = _make_probe(ProbeOutcome.retry("pending"))
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(PollCancelled) as exc_info:
            await run_until_terminal(
                RetryPolicy(max_duration_seconds=60), probe,
                cancel_event=cancel, clock=clock, sleep=clock.sleep,
            )

        assert exc_info.value.attempts == 0
        assert probe.calls == []

    @pytest.mark.asyncio
    async def test_cancel_interrupts_sleep_promptly(self):
        """A 10 minute interval must not delay cancellation."""
        probe = _make_probe(ProbeOutcome.retry("pending"))
        cancel = asyncio.Event()
        policy = RetryPolicy(interval_seconds=600, max_duration_seconds=3600)

        asyncio.get_running_loop().call_later(0.05, cancel.set)
        started = time.monotonic()
        with pytest.raises(PollCancelled) as exc_info:
            await asyncio.wait_for(
                run_until_terminal(policy, probe, cancel_event=cancel), timeout=5
            )

        assert time.monotonic() - started < 5
        assert exc_info.value.attempts == 1
        assert exc_info.value.last_reason == "pending"

    @pytest.mark.asyncio
    async def test_cancel_abandons_status_read_in_flight(self):
        """A status read that never answers must not hold up cancellation."""
        clock = FakeClock()
        cancel = asyncio.Event()
        abandoned = []

        async def hanging_read():
            cancel.set()
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                abandoned.append(True)
                raise

        with pytest.raises(PollCancelled) as exc_info:
            await asyncio.wait_for(
                run_until_terminal(
                    RetryPolicy(max_duration_seconds=60), hanging_read,
                    cancel_event=cancel, clock=clock, sleep=clock.sleep,
                ),
                timeout=5,
            )

        assert exc_info.value.attempts == 1
        assert abandoned == [True]
        assert clock.sleeps == []


class TestCancellable:
    @pytest.mark.asyncio
    async def test_without_event_just_awaits(self):
        async def work():
            return "ok"

        assert await cancellable(work()) == "ok"

    @pytest.mark.asyncio
    async def test_work_finishing_first_returns_result(self):
        async def work():
            return 42

        assert await cancellable(work(), asyncio.Event()) == 42

    @pytest.mark.asyncio
    async def test_preset_event_never_starts_work(self):
        started = []

        async def work():
            started.append(True)

        cancel = asyncio.Event()
        cancel.set()
        with pytest.raises(CancelSignal):
            await cancellable(work(), cancel)
        assert started == []

    @pytest.mark.asyncio
    async def test_signal_cancels_running_work(self):
        cancel = asyncio.Event()
        abandoned = []

        async def work():
            try:
                await asyncio.sleep(60)
            except asyncio.CancelledError:
                abandoned.append(True)
                raise

        asyncio.get_running_loop().call_later(0.01, cancel.set)
        with pytest.raises(CancelSignal):
            await asyncio.wait_for(cancellable(work(), cancel), timeout=5)
        assert abandoned == [True]

    @pytest.mark.asyncio
    async def test_work_errors_propagate(self):
        async def work():
            raise ValueError("bad")

        with pytest.raises(ValueError):
            await cancellable(work(), asyncio.Event())


class TestWaitInterval:
    @pytest.mark.asyncio
    async def test_returns_false_when_interval_elapses(self):
        assert await wait_interval(0.01, asyncio.Event()) is False

    @pytest.mark.asyncio
    async def test_returns_true_when_cancelled(self):
        cancel = asyncio.Event()
        cancel.set()
        assert await wait_interval(60, cancel) is True

    @pytest.mark.asyncio
    async def test_plain_sleep_without_event(self):
        assert await wait_interval(0.01) is False
