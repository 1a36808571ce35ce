"""Tests for the FastAPI API endpoints."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from ybm_control.api.app import STATUS_BY_CATEGORY, create_app, watch_disconnect
from ybm_control.errors import (
    NotFoundError,
    OperationFailedError,
    RejectedError,
    TimedOutError,
    UnsupportedOperationError,
)
from ybm_control.models.network import AllowList
from ybm_control.resources.base import ResourceHandler
from ybm_control.resources.registry import ResourceRegistry


class StubAllowListHandler(ResourceHandler[AllowList]):
    """Answers from a dict of allow lists; `fail_with` makes mutations raise."""

    type_name = "allow_list"
    model = AllowList
    label = "allow list"
    id_field = "allow_list_id"

    def __init__(self):
        super().__init__(client=None, reconciler=None)
        self.lists = {}
        self.fail_with = None

    async def create(self, plan):
        if self.fail_with:
            raise self.fail_with
        created = plan.model_copy(update={"allow_list_id": f"al-{len(self.lists) + 1}"})
        self.lists[created.allow_list_id] = created
        return created

    async def delete(self, state):
        if self.fail_with:
            raise self.fail_with
        self.lists.pop(state.allow_list_id, None)

    async def fetch(self, state):
        if state.allow_list_id not in self.lists:
            raise NotFoundError("The allow list was not found.", "gone")
        return self.lists[state.allow_list_id]


@pytest.fixture
def handler():
    return StubAllowListHandler()


@pytest.fixture
def client(handler):
    """Create a test client around a registry with one stub handler."""
    registry = ResourceRegistry()
    registry.register(handler)
    return TestClient(create_app(registry=registry))


def _payload(**overrides):
    body = {"allow_list_name": "office", "cidr_list": ["10.0.0.0/8"]}
    body.update(overrides)
    return body


class TestResourceEndpoints:
    def test_list_resource_types(self, client):
        response = client.get("/resources")
        assert response.status_code == 200
        assert response.json() == {"resource_types": ["allow_list"]}

    def test_create_returns_final_state(self, client):
        response = client.post("/resources/allow_list/create", json=_payload())
        assert response.status_code == 200
        data = response.json()
        assert data["allow_list_id"] == "al-1"
        assert data["cidr_list"] == ["10.0.0.0/8"]

    def test_read_existing(self, client):
        created = client.post("/resources/allow_list/create", json=_payload()).json()
        response = client.post("/resources/allow_list/read", json=created)
        assert response.status_code == 200
        assert response.json()["allow_list_name"] == "office"

    def test_read_of_deleted_resource_is_404(self, client):
        response = client.post("/resources/allow_list/read", json=_payload(allow_list_id="al-9"))
        assert response.status_code == 404
        assert response.json()["category"] == "not_found"

    def test_delete(self, client, handler):
        created = client.post("/resources/allow_list/create", json=_payload()).json()
        response = client.post("/resources/allow_list/delete", json=created)
        assert response.status_code == 200
        assert response.json() == {"status": "deleted", "resource_type": "allow_list"}
        assert handler.lists == {}

    def test_unsupported_update(self, client):
        response = client.post("/resources/allow_list/update", json={
            "plan": _payload(), "state": _payload(allow_list_id="al-1"),
        })
        assert response.status_code == 422
        assert response.json()["category"] == "unsupported"

    def test_unknown_resource_type(self, client):
        response = client.post("/resources/warehouse/create", json={})
        assert response.status_code == 404
        assert "warehouse" in response.json()["detail"]

    def test_invalid_payload_is_rejected(self, client):
        response = client.post("/resources/allow_list/create", json={"allow_list_name": "x"})
        assert response.status_code == 422
        assert response.json()["category"] == "rejected"


class TestErrorMapping:
    @pytest.mark.parametrize("error,status", [
        (RejectedError("Unable to create allow list:", "bad cidr"), 422),
        (OperationFailedError("Unable to delete allow list:", "failed"), 502),
        (TimedOutError("Unable to delete allow list:", "timed out"), 504),
        (UnsupportedOperationError("Unable to update allow list.", "no"), 422),
    ])
    def test_category_determines_status(self, client, handler, error, status):
        handler.fail_with = error
        response = client.post("/resources/allow_list/create", json=_payload())

        assert response.status_code == status
        body = response.json()
        assert body["category"] == error.category
        assert body["summary"] == error.summary
        assert body["detail"] == error.detail

    def test_every_category_has_a_status(self):
        from ybm_control import errors

        categories = {
            cls.category for cls in vars(errors).values()
            if isinstance(cls, type) and issubclass(cls, errors.ReconcileError)
            and cls is not errors.ReconcileError
        }
        assert categories <= set(STATUS_BY_CATEGORY)


class _FakeRequest:
    """Reports the client as gone from the `gone_after`-th check on."""

    def __init__(self, gone_after):
        self.gone_after = gone_after
        self.checks = 0
        self.url = type("Url", (), {"path": "/resources/allow_list/delete"})()

    async def is_disconnected(self):
        self.checks += 1
        return self.checks >= self.gone_after


class TestDisconnectWatch:
    @pytest.mark.asyncio
    async def test_disconnect_sets_cancel_event(self):
        request = _FakeRequest(gone_after=2)
        cancel = asyncio.Event()

        await asyncio.wait_for(watch_disconnect(request, cancel, interval=0), timeout=5)

        assert cancel.is_set()
        assert request.checks == 2

    @pytest.mark.asyncio
    async def test_stops_once_event_is_set_elsewhere(self):
        request = _FakeRequest(gone_after=1000)
        cancel = asyncio.Event()
        cancel.set()

        await watch_disconnect(request, cancel, interval=0)
        assert request.checks == 0
