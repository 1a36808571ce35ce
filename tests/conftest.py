"""Shared fixtures: a scripted fake management API and an instant clock."""

import json
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from ybm_control.client.api import ManagementClient
from ybm_control.config import ApiSettings
from ybm_control.reconciler.loop import MutationReconciler
from ybm_control.reconciler.status import TaskStatusReader

API_PREFIX = "/api/public/v1"
TOKEN = "eyJhbGciOiJIUzI1NiJ9.test-token"


class Failure:
    """Scripted error response."""

    def __init__(self, status_code: int, detail: str = "boom"):
        self.status_code = status_code
        self.detail = detail


class FakeRemote:
    """
    Routes requests by (method, path) to scripted responses.

    Each route holds a list of responses consumed in order; the last one
    repeats. A response is a Failure, a callable taking the request, or any
    JSON value, which is wrapped as {"data": value}.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[Any]] = {}
        self.param_routes: List[Tuple[str, str, dict, List[Any]]] = []
        self.requests: List[httpx.Request] = []

    def on(self, method: str, path: str, *responses: Any, params: Optional[dict] = None) -> None:
        if params:
            self.param_routes.append((method, path, params, list(responses)))
        else:
            self.routes[(method, path)] = list(responses)

    def tasks(self, account_id: str, task_type: str, *states: Optional[str]) -> None:
        """Script the task listing for one task type. None means no task yet."""
        responses = [[] if s is None else [{"info": {"state": s}}] for s in states]
        self.on("GET", f"/accounts/{account_id}/tasks", *responses, params={"task_type": task_type})

    def calls(self, method: str, path: str) -> int:
        return sum(
            1 for r in self.requests
            if r.method == method and r.url.path == API_PREFIX + path
        )

    def bodies(self, method: str, path: str) -> List[Any]:
        return [
            json.loads(r.content) if r.content else None
            for r in self.requests
            if r.method == method and r.url.path == API_PREFIX + path
        ]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path[len(API_PREFIX):]

        responses = None
        for method, route_path, params, scripted in self.param_routes:
            if method == request.method and route_path == path and all(
                request.url.params.get(k) == v for k, v in params.items()
            ):
                responses = scripted
                break
        if responses is None:
            responses = self.routes.get((request.method, path))
        if responses is None:
            return httpx.Response(404, json={"error": {"detail": f"no route {request.method} {path}"}})

        response = responses.pop(0) if len(responses) > 1 else responses[0]
        if isinstance(response, Failure):
            return httpx.Response(
                response.status_code, json={"error": {"detail": response.detail}}
            )
        if callable(response):
            return response(request)
        return httpx.Response(200, json={"data": response})


class FakeClock:
    """Monotonic clock that only moves when the driver sleeps."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float, cancel_event=None) -> bool:
        self.sleeps.append(seconds)
        self.now += seconds
        return cancel_event is not None and cancel_event.is_set()


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def api_settings():
    return ApiSettings(host="ybm.test", auth_token=TOKEN)


@pytest.fixture
def client(remote, api_settings):
    return ManagementClient(api_settings, transport=remote.transport())


@pytest.fixture
def reconciler(client, clock):
    return MutationReconciler(TaskStatusReader(client), clock=clock, sleep=clock.sleep)
