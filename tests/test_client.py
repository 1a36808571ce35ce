"""Tests for the management API client."""

import httpx
import pytest

from conftest import TOKEN, Failure
from ybm_control.client.api import ApiError, ManagementClient, redact_token, scope_path
from ybm_control.config import ApiSettings
from ybm_control.errors import MAX_DETAIL_LENGTH, truncate_detail


class TestRequests:
    @pytest.mark.asyncio
    async def test_unwraps_data_envelope(self, remote, client):
        remote.on("GET", "/accounts", [{"info": {"id": "a-1"}}])
        assert await client.list_accounts() == [{"info": {"id": "a-1"}}]

    @pytest.mark.asyncio
    async def test_sends_bearer_and_user_agent(self, remote, client):
        remote.on("GET", "/accounts", [])
        await client.list_accounts()

        headers = remote.requests[-1].headers
        assert headers["Authorization"] == f"Bearer {TOKEN}"
        assert headers["User-Agent"].startswith("ybm-control/")

    @pytest.mark.asyncio
    async def test_error_detail_comes_from_payload(self, remote, client):
        remote.on("GET", "/accounts", Failure(409, "cluster name already in use"))

        with pytest.raises(ApiError) as exc_info:
            await client.list_accounts()

        assert exc_info.value.status_code == 409
        assert exc_info.value.detail == "cluster name already in use"
        assert not exc_info.value.not_found

    @pytest.mark.asyncio
    async def test_not_found_flag(self, remote, client):
        with pytest.raises(ApiError) as exc_info:
            await client.get("/accounts/a-1/projects/p-1/clusters/missing")
        assert exc_info.value.not_found

    @pytest.mark.asyncio
    async def test_plain_text_error_body(self, remote, client):
        remote.on("GET", "/accounts", lambda r: httpx.Response(502, text="Bad gateway"))
        with pytest.raises(ApiError) as exc_info:
            await client.list_accounts()
        assert exc_info.value.detail == "Bad gateway"

    @pytest.mark.asyncio
    async def test_transport_failure_becomes_api_error(self, api_settings):
        def explode(request):
            raise httpx.ConnectError("connection refused")

        client = ManagementClient(api_settings, transport=httpx.MockTransport(explode))
        with pytest.raises(ApiError) as exc_info:
            await client.list_accounts()

        assert exc_info.value.status_code is None
        assert "connection refused" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_empty_body_is_none(self, remote, client):
        remote.on("DELETE", "/accounts/a-1/projects/p-1/vpcs/v-1", lambda r: httpx.Response(204))
        assert await client.delete(scope_path("a-1", "p-1", "vpcs", "v-1")) is None

    @pytest.mark.asyncio
    async def test_none_params_are_dropped(self, remote, client):
        remote.on("GET", "/accounts/a-1/tasks", [])
        await client.list_tasks(
            "a-1", task_type="CREATE_VPC", project_id="p-1", entity_id="v-1", entity_type=None
        )
        assert "entity_type" not in remote.requests[-1].url.params


class TestPagination:
    @pytest.mark.asyncio
    async def test_follows_continuation_tokens(self, remote, client):
        path = "/accounts/a-1/projects/p-1/allow-lists"

        def page(request):
            token = request.url.params.get("continuation_token")
            if token is None:
                return httpx.Response(
                    200, json={"data": [{"id": 1}], "_metadata": {"continuation_token": "t2"}}
                )
            return httpx.Response(200, json={"data": [{"id": 2}], "_metadata": {}})

        remote.on("GET", path, page)
        pages = [p async for p in client.iter_pages(path)]

        assert pages == [[{"id": 1}], [{"id": 2}]]
        assert remote.calls("GET", path) == 2


class TestDiagnostics:
    def test_redacts_jwt_and_bearer_values(self):
        text = "Authorization: Bearer abc.def failed with eyJhbGciOi.payload.sig"
        redacted = redact_token(text)
        assert "abc.def" not in redacted
        assert "eyJ" not in redacted

    def test_long_details_are_truncated_with_note(self):
        detail = "<html>" + "x" * (MAX_DETAIL_LENGTH + 500)
        truncated = truncate_detail(detail)
        assert truncated.startswith("NOTE: The length of the output")
        assert "authentication token" in truncated
        assert truncated.endswith("x" * 10)
        assert len(truncated) < len(detail)

    def test_short_details_unchanged(self):
        assert truncate_detail("short") == "short"

    def test_base_url_follows_secure_flag(self):
        assert ApiSettings(host="h", auth_token="t").base_url == "https://h/api/public/v1"
        insecure = ApiSettings(host="h:8080", auth_token="t", use_secure_host=False)
        assert insecure.base_url == "http://h:8080/api/public/v1"

    def test_token_not_in_repr(self):
        assert "secret" not in repr(ApiSettings(host="h", auth_token="secret"))
