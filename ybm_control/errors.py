"""
Typed failures surfaced to the host.

Every error carries a two-part message: a short `summary` naming what could
not be done, and a `detail` diagnostic that may embed the last error seen
while polling. Callers branch on the exception type (or `category`), never
on message text.
"""

from typing import Optional

MAX_DETAIL_LENGTH = 10000


class ReconcileError(Exception):
    """Base class for every failure a lifecycle operation can report."""

    category = "error"

    def __init__(self, summary: str, detail: str = ""):
        super().__init__(f"{summary} {detail}".strip())
        self.summary = summary
        self.detail = detail

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "summary": self.summary,
            "detail": self.detail,
        }


class RejectedError(ReconcileError):
    """The mutation failed validation or the remote refused it. Nothing was polled."""

    category = "rejected"


class UnsupportedOperationError(RejectedError):
    category = "unsupported"


class OperationFailedError(ReconcileError):
    """The remote explicitly marked the background task as failed."""

    category = "operation_failed"


class StatusUnavailableError(ReconcileError):
    """Status reads kept failing until the failure budget ran out."""

    category = "status_unavailable"


class TimedOutError(ReconcileError):
    """
    The policy's maximum duration elapsed while the task was still running.

    The remote operation may still complete later.
    """

    category = "timed_out"


class PostSuccessReadError(ReconcileError):
    """
    The mutation succeeded but the confirmation read failed.

    Re-running the mutation is unsafe; refresh the resource instead.
    """

    category = "post_success_read"


class NotFoundError(ReconcileError):
    """The remote entity no longer exists."""

    category = "not_found"


class OperationCancelledError(ReconcileError):
    category = "cancelled"


class ConfigurationError(ReconcileError):
    category = "configuration"


class ConflictError(ReconcileError):
    """Another operation on the same entity is still in flight."""

    category = "conflict"


def truncate_detail(detail: str, limit: Optional[int] = None) -> str:
    """Cap oversized diagnostics, which usually mean an HTML login page came back."""
    limit = limit or MAX_DETAIL_LENGTH
    if len(detail) <= limit:
        return detail
    return (
        "NOTE: The length of the output indicates your authentication token "
        "may be out of date. A truncated response follows:\n" + detail[:limit]
    )
