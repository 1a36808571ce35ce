"""
Mutation Reconciler — submit a mutation, wait for the remote to finish it,
then read back the authoritative state.

States (per call):
  SUBMITTED → POLLING → (SUCCEEDED_CONFIRMED | FAILED | TIMED_OUT)

Behavioral Contract:
- A mutation the remote rejects is reported as RejectedError; nothing is polled.
- Polling ends in exactly one of: success (then the final read), a typed
  fatal error, or TimedOutError. Never an indeterminate result.
- The final read runs only after success. If it fails the caller gets
  PostSuccessReadError, since re-running the mutation would be unsafe.
- Setting cancel_event abandons whichever step is in progress (submission,
  a status read, a sleep or the final read) and raises OperationCancelledError.
- Nothing is persisted between calls. A restarted process re-attaches to an
  in-flight operation with await_completion(), which re-derives status
  from the task listing.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from ybm_control.client.api import ApiError
from ybm_control.errors import (
    OperationCancelledError,
    OperationFailedError,
    PostSuccessReadError,
    ReconcileError,
    RejectedError,
    StatusUnavailableError,
    TimedOutError,
)
from ybm_control.models.reconciler import FailureBudget, FailureKind, ProbeOutcome, RetryPolicy
from ybm_control.models.task import OperationDescriptor
from ybm_control.reconciler.backoff import (
    CancelSignal,
    Clock,
    DeadlineExceeded,
    PollCancelled,
    ProbeFailed,
    Sleeper,
    cancellable,
    run_until_terminal,
    wait_interval,
)
from ybm_control.reconciler.classifier import classify
from ybm_control.reconciler.status import StatusProbe, TaskStatusReader

logger = logging.getLogger(__name__)

ProbeFactory = Callable[[OperationDescriptor], StatusProbe]
Mutation = Callable[[], Awaitable[Any]]
Reader = Callable[[Any], Awaitable[Any]]


async def passthrough(submitted: Any) -> Any:
    """Read step that hands back the mutation result (usually the new id)."""
    return submitted


class MutationReconciler:
    """
    One generic implementation shared by every resource type. Resources
    supply only the closures (mutation, read, optional probe) and a policy.
    """

    def __init__(
        self,
        reader: TaskStatusReader,
        clock: Clock = time.monotonic,
        sleep: Sleeper = wait_interval,
    ):
        self.reader = reader
        self.clock = clock
        self.sleep = sleep

    async def reconcile(
        self,
        descriptor: OperationDescriptor,
        policy: RetryPolicy,
        mutate: Mutation,
        read: Optional[Reader] = None,
        *,
        action: str,
        summary: str,
        probe: Optional[ProbeFactory] = None,
        settle: Optional[ProbeFactory] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Any:
        """
        Submit `mutate`, poll to a terminal status, then return `read(result)`.

        `result` is whatever `mutate` returned. When the descriptor has no
        entity id yet, `mutate` must return the new entity's id.
        `settle` is an optional second wait (same policy) run after the task
        succeeds and before the read.
        """
        submitted = await self._submit(mutate, action, summary, cancel_event)

        if descriptor.entity_id is None:
            if not isinstance(submitted, str) or not submitted:
                raise ValueError(
                    f"{action}: mutation must return the new entity id, got {submitted!r}"
                )
            descriptor = descriptor.bind(submitted)
        logger.info(
            "%s submitted for %s %s",
            action,
            descriptor.entity_type.value,
            descriptor.entity_id,
        )

        await self.await_completion(
            descriptor,
            policy,
            action=action,
            summary=summary,
            probe=probe,
            cancel_event=cancel_event,
        )
        if settle is not None:
            await self.await_completion(
                descriptor,
                policy,
                action=action,
                summary=summary,
                probe=settle,
                cancel_event=cancel_event,
            )

        if read is None:
            return None
        return await self.confirm(
            lambda: read(submitted), action=action, summary=summary, cancel_event=cancel_event
        )

    async def confirm(
        self,
        read: Callable[[], Awaitable[Any]],
        *,
        action: str,
        summary: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Any:
        """Run the authoritative read that follows a successful mutation."""
        try:
            return await cancellable(read(), cancel_event)
        except CancelSignal as exc:
            raise OperationCancelledError(
                summary,
                f"The {action} succeeded but the final read was cancelled.",
            ) from exc
        except (ApiError, ReconcileError) as exc:
            detail = getattr(exc, "detail", str(exc))
            raise PostSuccessReadError(
                summary,
                f"The {action} succeeded but its final state could not be read: {detail}",
            ) from exc

    async def await_completion(
        self,
        descriptor: OperationDescriptor,
        policy: RetryPolicy,
        *,
        action: str,
        summary: str,
        probe: Optional[ProbeFactory] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> int:
        """Poll until terminal. Returns the number of polls it took."""
        status_probe = (probe or self.reader.probe_for)(descriptor)
        budget = FailureBudget(limit=policy.failure_budget)

        async def attempt() -> ProbeOutcome:
            reading = await status_probe()
            logger.info("%s in progress, state: %s", action, reading.raw_state or reading.status.value)
            return classify(reading, budget)

        try:
            attempts = await run_until_terminal(
                policy,
                attempt,
                cancel_event=cancel_event,
                clock=self.clock,
                sleep=self.sleep,
            )
        except ProbeFailed as exc:
            if exc.outcome.failure == FailureKind.OPERATION_FAILED:
                raise OperationFailedError(summary, f"{action} operation failed") from exc
            raise StatusUnavailableError(summary, exc.outcome.reason) from exc
        except DeadlineExceeded as exc:
            detail = f"The operation timed out waiting for {action} to complete."
            if exc.last_reason:
                detail += f" Last observed: {exc.last_reason}."
            raise TimedOutError(summary, detail) from exc
        except PollCancelled as exc:
            raise OperationCancelledError(
                summary, f"Cancelled while waiting for {action} to complete."
            ) from exc

        logger.info("%s completed after %d polls", action, attempts)
        return attempts

    @staticmethod
    async def _submit(
        mutate: Mutation,
        action: str,
        summary: str,
        cancel_event: Optional[asyncio.Event],
    ) -> Any:
        try:
            return await cancellable(mutate(), cancel_event)
        except CancelSignal as exc:
            raise OperationCancelledError(
                summary,
                f"The {action} request was cancelled before the remote answered. "
                "Its outcome is unknown.",
            ) from exc
        except ReconcileError:
            raise
        except ApiError as exc:
            raise RejectedError(summary, exc.detail) from exc
