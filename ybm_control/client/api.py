"""
Management API client — thin async transport over httpx.

Owns the connection, the bearer credential and error normalisation. It does
not retry: waiting and retrying are the reconciler's job.

Responses are JSON envelopes of the form {"data": ..., "_metadata": {...}}.
Failures carry {"error": {"detail": "..."}} when the remote produced them.
"""

import logging
import re
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from ybm_control.config import ApiSettings
from ybm_control.errors import truncate_detail

logger = logging.getLogger(__name__)

_JWT_PATTERN = re.compile(r"eyJ[\w\-.]*")
_BEARER_PATTERN = re.compile(r"(Bearer\s+)\S+", re.IGNORECASE)


class ApiError(Exception):
    """A request to the management API failed (HTTP error or transport failure)."""

    def __init__(
        self,
        status_code: Optional[int],
        detail: str,
        method: str = "",
        path: str = "",
    ):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail
        self.method = method
        self.path = path

    @property
    def not_found(self) -> bool:
        return self.status_code == 404

    def __str__(self) -> str:
        status = self.status_code if self.status_code is not None else "transport error"
        return f"{self.method} {self.path} ({status}): {self.detail}"


def redact_token(text: str) -> str:
    """Mask bearer credentials before text reaches logs or operators."""
    text = _BEARER_PATTERN.sub(r"\1***", text)
    return _JWT_PATTERN.sub("***", text)


def scope_path(account_id: str, project_id: str, *parts: str) -> str:
    """Build a project-scoped resource path."""
    path = f"/accounts/{account_id}/projects/{project_id}"
    for part in parts:
        path += f"/{part}"
    return path


class ManagementClient:
    """
    Constructed once per process from ApiSettings and passed explicitly to
    every handler. Pass `transport` to substitute a fake remote in tests.
    """

    def __init__(
        self,
        settings: ApiSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._http = httpx.AsyncClient(
            base_url=settings.base_url,
            headers={
                "Authorization": f"Bearer {settings.auth_token}",
                "User-Agent": settings.user_agent,
            },
            timeout=settings.request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "ManagementClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        """Send one request and return the decoded body (None when empty)."""
        logger.debug("%s %s", method, path)
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        try:
            response = await self._http.request(method, path, params=params, json=json)
        except httpx.HTTPError as exc:
            detail = redact_token(str(exc)) or exc.__class__.__name__
            raise ApiError(None, detail, method, path) from exc

        if response.status_code >= 400:
            raise ApiError(response.status_code, _error_detail(response), method, path)
        if not response.content:
            return None
        return response.json()

    async def get(self, path: str, **params: Any) -> Any:
        return _data(await self.request("GET", path, params=params))

    async def post(self, path: str, body: Any = None) -> Any:
        return _data(await self.request("POST", path, json=body))

    async def put(self, path: str, body: Any = None) -> Any:
        return _data(await self.request("PUT", path, json=body))

    async def delete(self, path: str) -> Any:
        return _data(await self.request("DELETE", path))

    async def iter_pages(self, path: str, **params: Any) -> AsyncIterator[List[dict]]:
        """Yield each page of a listing, following continuation tokens."""
        token = None
        while True:
            payload = await self.request(
                "GET", path, params={**params, "continuation_token": token}
            )
            yield (payload or {}).get("data") or []
            token = ((payload or {}).get("_metadata") or {}).get("continuation_token")
            if not token:
                return

    # --- Shared lookups ---

    async def list_accounts(self) -> List[dict]:
        return await self.get("/accounts") or []

    async def list_tasks(
        self,
        account_id: str,
        *,
        task_type: str,
        project_id: str,
        entity_id: str,
        entity_type: Optional[str] = None,
        limit: int = 1,
    ) -> List[dict]:
        """Most recent tasks first."""
        return await self.get(
            f"/accounts/{account_id}/tasks",
            task_type=task_type,
            project_id=project_id,
            entity_id=entity_id,
            entity_type=entity_type,
            limit=limit,
        ) or []

    async def get_cluster(self, account_id: str, project_id: str, cluster_id: str) -> dict:
        return await self.get(scope_path(account_id, project_id, "clusters", cluster_id))


def _data(payload: Any) -> Any:
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


def _error_detail(response: httpx.Response) -> str:
    detail = None
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            detail = error.get("detail")
    if not detail:
        detail = response.text or response.reason_phrase
    return truncate_detail(redact_token(detail))
