"""Retry policy, failure budget and probe outcomes for the reconciler."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


DEFAULT_POLL_INTERVAL_SECONDS = 10.0
DEFAULT_READ_FAILURE_BUDGET = 3


class RetryPolicy(BaseModel):
    """Fixed-interval polling bounded by a maximum elapsed duration."""

    interval_seconds: float = Field(gt=0, default=DEFAULT_POLL_INTERVAL_SECONDS)
    max_duration_seconds: float = Field(gt=0)
    failure_budget: int = Field(ge=1, default=DEFAULT_READ_FAILURE_BUDGET)


class FailureBudget(BaseModel):
    """
    Consecutive transient status-read failures still tolerated.

    Scoped to a single reconciliation phase and never reused.
    """

    limit: int = Field(ge=1, default=DEFAULT_READ_FAILURE_BUDGET)
    consecutive_failures: int = 0

    @property
    def remaining(self) -> int:
        return self.limit - self.consecutive_failures

    @property
    def exhausted(self) -> bool:
        return self.remaining <= 0

    def consume(self) -> int:
        """Record one failed read. Returns what is left of the budget."""
        self.consecutive_failures += 1
        return self.remaining

    def restore(self) -> None:
        self.consecutive_failures = 0


class OutcomeKind(str, Enum):
    DONE = "done"
    RETRY = "retry"
    FATAL = "fatal"


class FailureKind(str, Enum):
    OPERATION_FAILED = "operation_failed"   # remote reported FAILED
    STATUS_UNAVAILABLE = "status_unavailable"  # failure budget exhausted


class ProbeOutcome(BaseModel):
    """Classified result of a single probe attempt."""

    kind: OutcomeKind
    reason: str = ""
    failure: Optional[FailureKind] = None

    @classmethod
    def done(cls, reason: str = "") -> "ProbeOutcome":
        return cls(kind=OutcomeKind.DONE, reason=reason)

    @classmethod
    def retry(cls, reason: str) -> "ProbeOutcome":
        return cls(kind=OutcomeKind.RETRY, reason=reason)

    @classmethod
    def fatal(cls, failure: FailureKind, reason: str) -> "ProbeOutcome":
        return cls(kind=OutcomeKind.FATAL, failure=failure, reason=reason)

    @property
    def terminal(self) -> bool:
        return self.kind != OutcomeKind.RETRY
