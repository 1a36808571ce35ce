"""
Failure Classifier — turns one status reading into a driver decision.

Rules, in priority order:
  1. Read failed: consume budget; fatal (STATUS_UNAVAILABLE) once exhausted, else retry.
  2. FAILED: fatal (OPERATION_FAILED).
  3. SUCCEEDED: done.
  4. Anything else: retry.

A failed read is never confused with the remote reporting the task failed.
Budget is per consecutive failure: any successful read restores it.
"""

import logging

from ybm_control.models.reconciler import FailureBudget, FailureKind, ProbeOutcome
from ybm_control.models.task import TaskStatus, TaskStatusReading

logger = logging.getLogger(__name__)


def classify(reading: TaskStatusReading, budget: FailureBudget) -> ProbeOutcome:
    if not reading.ok:
        remaining = budget.consume()
        if remaining <= 0:
            logger.info("Unable to get task state, giving up: %s", reading.message)
            return ProbeOutcome.fatal(
                FailureKind.STATUS_UNAVAILABLE,
                f"Unable to get the operation state: {reading.message}",
            )
        logger.warning(
            "Unable to get task state, retrying (%d reads left): %s",
            remaining,
            reading.message,
        )
        return ProbeOutcome.retry(f"unable to get the operation state: {reading.message}")

    budget.restore()

    if reading.status == TaskStatus.FAILED:
        return ProbeOutcome.fatal(FailureKind.OPERATION_FAILED, "the task failed")
    if reading.status == TaskStatus.SUCCEEDED:
        return ProbeOutcome.done()

    state = reading.raw_state or reading.status.value
    return ProbeOutcome.retry(f"operation in progress, state: {state}")
