"""
Task Status Reader and entity-state probes.

Behavioral Contract:
- A status probe is an async callable returning a TaskStatusReading.
- Probes never raise for remote failures: any transport or lookup error
  becomes a reading with ok=False and a diagnostic message.
- No retries here. Retrying belongs to the backoff driver.
"""

import logging
from typing import Awaitable, Callable, Iterable, Optional

from ybm_control.client.api import ApiError, ManagementClient
from ybm_control.models.task import (
    EntityType,
    OperationDescriptor,
    OperationKind,
    TaskStatus,
    TaskStatusReading,
)

logger = logging.getLogger(__name__)

StatusProbe = Callable[[], Awaitable[TaskStatusReading]]


class TaskStatusReader:
    """Looks up the most recent background task for an entity and operation kind."""

    def __init__(self, client: ManagementClient):
        self.client = client

    async def read_task_status(
        self,
        account_id: str,
        project_id: str,
        entity_id: str,
        entity_type: Optional[EntityType],
        kind: OperationKind,
    ) -> TaskStatusReading:
        try:
            tasks = await self.client.list_tasks(
                account_id,
                task_type=kind.value,
                project_id=project_id,
                entity_id=entity_id,
                entity_type=entity_type.value if entity_type else None,
                limit=1,
            )
        except ApiError as exc:
            return TaskStatusReading.unavailable(exc.detail)

        if not isinstance(tasks, list):
            return TaskStatusReading.unavailable(
                f"Unexpected task listing for {kind.value} on {entity_id}"
            )
        if not tasks:
            logger.info("No %s task found for entity %s", kind.value, entity_id)
            return TaskStatusReading(status=TaskStatus.TASK_NOT_FOUND)

        latest = tasks[0] if isinstance(tasks[0], dict) else {}
        info = latest.get("info") or {}
        return TaskStatusReading.observed(info.get("state"))

    def probe_for(self, descriptor: OperationDescriptor) -> StatusProbe:
        """Bind a descriptor into a zero-argument probe."""
        if descriptor.entity_id is None:
            raise ValueError(f"{descriptor.kind.value}: descriptor has no entity id")

        async def probe() -> TaskStatusReading:
            return await self.read_task_status(
                descriptor.account_id,
                descriptor.project_id,
                descriptor.entity_id,
                descriptor.entity_type,
                descriptor.kind,
            )

        return probe


class EntityStateProbe:
    """
    Confirms an operation by polling the entity's own lifecycle state.

    Used where the remote runs no trackable task (backups, VPCs, endpoints,
    read replicas, pause/resume). States are compared case-insensitively.
    When `gone` is set, a 404 from `fetch` is read as that status, which is
    how deletions are confirmed.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[Optional[str]]],
        succeeded: Iterable[str],
        failed: Iterable[str] = (),
        gone: Optional[TaskStatus] = None,
    ):
        self.fetch = fetch
        self.succeeded = {s.upper() for s in succeeded}
        self.failed = {s.upper() for s in failed}
        self.gone = gone

    async def __call__(self) -> TaskStatusReading:
        try:
            raw_state = await self.fetch()
        except ApiError as exc:
            if exc.not_found and self.gone is not None:
                return TaskStatusReading(status=self.gone, raw_state="NOT_FOUND")
            return TaskStatusReading.unavailable(exc.detail)

        state = (raw_state or "").upper()
        if state in self.succeeded:
            status = TaskStatus.SUCCEEDED
        elif state in self.failed:
            status = TaskStatus.FAILED
        else:
            status = TaskStatus.IN_PROGRESS
        return TaskStatusReading(status=status, raw_state=raw_state)


class EditTaskProbe:
    """
    Task probe for edits that may legitimately spawn no task.

    An edit the remote considers a no-op never creates a task. Tolerate
    TASK_NOT_FOUND for `max_not_found` polls, then treat the edit as
    complete. A first observed task that is not IN_PROGRESS belongs to an
    earlier edit, so this edit did not need one either.
    """

    def __init__(self, inner: StatusProbe, max_not_found: int = 6):
        self.inner = inner
        self.max_not_found = max_not_found
        self._not_found = 0
        self._awaiting_new_task = True

    async def __call__(self) -> TaskStatusReading:
        reading = await self.inner()
        if not reading.ok:
            return reading

        if reading.status == TaskStatus.TASK_NOT_FOUND:
            if self._not_found < self.max_not_found:
                self._not_found += 1
                logger.info("Edit task not found, retrying (%d/%d)", self._not_found, self.max_not_found)
                return reading
            logger.info("Edit task never appeared, the change did not require a task")
            return reading.model_copy(update={"status": TaskStatus.SUCCEEDED})

        if self._awaiting_new_task:
            if reading.status == TaskStatus.IN_PROGRESS:
                self._awaiting_new_task = False
                return reading
            logger.info(
                "Latest edit task is %s from an earlier edit, no new task was spawned",
                reading.raw_state,
            )
            return reading.model_copy(update={"status": TaskStatus.SUCCEEDED})

        return reading
