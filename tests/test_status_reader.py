"""Tests for the task status reader and the entity-state / edit probes."""

import pytest

from conftest import Failure
from ybm_control.client.api import ApiError
from ybm_control.models.task import (
    EntityType,
    OperationDescriptor,
    OperationKind,
    TaskStatus,
    TaskStatusReading,
)
from ybm_control.reconciler.status import EditTaskProbe, EntityStateProbe, TaskStatusReader


def _make_descriptor(entity_id="c-1", kind=OperationKind.CREATE_CLUSTER):
    return OperationDescriptor(
        account_id="a-1",
        project_id="p-1",
        entity_id=entity_id,
        entity_type=EntityType.CLUSTER,
        kind=kind,
    )


def _scripted(*readings):
    calls = []

    async def probe():
        calls.append(1)
        return readings[min(len(calls), len(readings)) - 1]

    probe.calls = calls
    return probe


class TestTaskStatusReader:
    @pytest.mark.asyncio
    async def test_reads_latest_task_state(self, remote, client):
        remote.tasks("a-1", "CREATE_CLUSTER", "IN_PROGRESS")
        reader = TaskStatusReader(client)

        reading = await reader.read_task_status(
            "a-1", "p-1", "c-1", EntityType.CLUSTER, OperationKind.CREATE_CLUSTER
        )

        assert reading.ok
        assert reading.status == TaskStatus.IN_PROGRESS
        assert reading.raw_state == "IN_PROGRESS"

    @pytest.mark.asyncio
    async def test_sends_task_coordinates(self, remote, client):
        remote.tasks("a-1", "DELETE_CLUSTER", "SUCCEEDED")
        await TaskStatusReader(client).read_task_status(
            "a-1", "p-1", "c-9", EntityType.CLUSTER, OperationKind.DELETE_CLUSTER
        )

        params = remote.requests[-1].url.params
        assert params["task_type"] == "DELETE_CLUSTER"
        assert params["project_id"] == "p-1"
        assert params["entity_id"] == "c-9"
        assert params["entity_type"] == "CLUSTER"
        assert params["limit"] == "1"

    @pytest.mark.asyncio
    async def test_empty_listing_is_task_not_found(self, remote, client):
        remote.tasks("a-1", "EDIT_CLUSTER", None)
        reading = await TaskStatusReader(client).read_task_status(
            "a-1", "p-1", "c-1", EntityType.CLUSTER, OperationKind.EDIT_CLUSTER
        )
        assert reading.ok
        assert reading.status == TaskStatus.TASK_NOT_FOUND

    @pytest.mark.asyncio
    async def test_transport_failure_is_reported_not_raised(self, remote, client):
        remote.on("GET", "/accounts/a-1/tasks", Failure(503, "service unavailable"))
        reading = await TaskStatusReader(client).read_task_status(
            "a-1", "p-1", "c-1", EntityType.CLUSTER, OperationKind.CREATE_CLUSTER
        )
        assert not reading.ok
        assert "service unavailable" in reading.message

    @pytest.mark.asyncio
    async def test_probe_for_binds_descriptor(self, remote, client):
        remote.tasks("a-1", "CREATE_CLUSTER", "SUCCEEDED")
        probe = TaskStatusReader(client).probe_for(_make_descriptor())
        assert (await probe()).status == TaskStatus.SUCCEEDED

    def test_probe_for_requires_entity_id(self, client):
        with pytest.raises(ValueError):
            TaskStatusReader(client).probe_for(_make_descriptor(entity_id=None))


class TestEntityStateProbe:
    @pytest.mark.asyncio
    async def test_states_compare_case_insensitively(self):
        async def fetch():
            return "Active"

        probe = EntityStateProbe(fetch, succeeded=("ACTIVE",))
        reading = await probe()
        assert reading.status == TaskStatus.SUCCEEDED
        assert reading.raw_state == "Active"

    @pytest.mark.asyncio
    async def test_failed_and_in_progress_states(self):
        states = iter(["CREATING", "FAILED"])

        async def fetch():
            return next(states)

        probe = EntityStateProbe(fetch, succeeded=("ACTIVE",), failed=("FAILED",))
        assert (await probe()).status == TaskStatus.IN_PROGRESS
        assert (await probe()).status == TaskStatus.FAILED

    @pytest.mark.asyncio
    async def test_not_found_maps_to_gone_status(self):
        async def fetch():
            raise ApiError(404, "not found")

        probe = EntityStateProbe(fetch, succeeded=(), gone=TaskStatus.SUCCEEDED)
        reading = await probe()
        assert reading.ok
        assert reading.status == TaskStatus.SUCCEEDED

    @pytest.mark.asyncio
    async def test_not_found_without_gone_is_unavailable(self):
        async def fetch():
            raise ApiError(404, "not found")

        reading = await EntityStateProbe(fetch, succeeded=("ACTIVE",))()
        assert not reading.ok

    @pytest.mark.asyncio
    async def test_other_errors_are_unavailable(self):
        async def fetch():
            raise ApiError(500, "internal error")

        probe = EntityStateProbe(fetch, succeeded=(), gone=TaskStatus.SUCCEEDED)
        reading = await probe()
        assert not reading.ok
        assert reading.message == "internal error"


class TestEditTaskProbe:
    @pytest.mark.asyncio
    async def test_tolerates_missing_task_then_completes(self):
        inner = _scripted(TaskStatusReading(status=TaskStatus.TASK_NOT_FOUND))
        probe = EditTaskProbe(inner, max_not_found=2)

        assert (await probe()).status == TaskStatus.TASK_NOT_FOUND
        assert (await probe()).status == TaskStatus.TASK_NOT_FOUND
        assert (await probe()).status == TaskStatus.SUCCEEDED

    @pytest.mark.asyncio
    async def test_follows_new_task_to_completion(self):
        inner = _scripted(
            TaskStatusReading(status=TaskStatus.TASK_NOT_FOUND),
            TaskStatusReading.observed("IN_PROGRESS"),
            TaskStatusReading.observed("FAILED"),
        )
        probe = EditTaskProbe(inner)

        assert (await probe()).status == TaskStatus.TASK_NOT_FOUND
        assert (await probe()).status == TaskStatus.IN_PROGRESS
        assert (await probe()).status == TaskStatus.FAILED

    @pytest.mark.asyncio
    async def test_finished_task_from_earlier_edit_means_no_new_task(self):
        inner = _scripted(TaskStatusReading.observed("FAILED"))
        probe = EditTaskProbe(inner)
        assert (await probe()).status == TaskStatus.SUCCEEDED

    @pytest.mark.asyncio
    async def test_read_failures_pass_through(self):
        inner = _scripted(TaskStatusReading.unavailable("timeout"))
        reading = await EditTaskProbe(inner)()
        assert not reading.ok
