"""
YBM Control API — FastAPI entry points for the host orchestration runtime.

Exposes, per resource type:
- create (desired config → final state)
- read (prior state → refreshed state, 404 when gone)
- update ({plan, state} → final state)
- delete (prior state → confirmation)

Every lifecycle failure is returned as {category, summary, detail}.

A caller that disconnects cancels its operation: the request's cancel event is
set and the reconciler stops at whatever remote call or sleep it is in.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from ybm_control.client.api import ManagementClient
from ybm_control.config import VERSION, Settings, configure_logging
from ybm_control.errors import ReconcileError
from ybm_control.reconciler.loop import MutationReconciler
from ybm_control.reconciler.status import TaskStatusReader
from ybm_control.resources.registry import (
    ResourceRegistry,
    UnknownResourceType,
    build_default_registry,
)

logger = logging.getLogger(__name__)

STATUS_BY_CATEGORY = {
    "rejected": 422,
    "unsupported": 422,
    "not_found": 404,
    "operation_failed": 502,
    "status_unavailable": 502,
    "post_success_read": 502,
    "timed_out": 504,
    "cancelled": 503,
    "configuration": 500,
    "conflict": 409,
}

DISCONNECT_POLL_SECONDS = 1.0


# --- Request/Response Models ---

class UpdateRequest(BaseModel):
    plan: dict
    state: dict


async def watch_disconnect(
    request: Request,
    cancel_event: asyncio.Event,
    interval: float = DISCONNECT_POLL_SECONDS,
) -> None:
    """Set `cancel_event` once the client behind `request` has gone away."""
    while not cancel_event.is_set():
        if await request.is_disconnected():
            logger.info("Client disconnected from %s, cancelling", request.url.path)
            cancel_event.set()
            return
        await asyncio.sleep(interval)


async def dispatch_request(
    registry: ResourceRegistry,
    request: Request,
    resource_type: str,
    operation: str,
    payload: Any,
):
    """Run one registry operation, cancelled if the client disconnects."""
    cancel_event = asyncio.Event()
    watcher = asyncio.ensure_future(watch_disconnect(request, cancel_event))
    try:
        return await registry.dispatch(resource_type, operation, payload, cancel_event)
    finally:
        watcher.cancel()


# --- Application Factory ---

def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[ResourceRegistry] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    With no registry, settings are loaded from the environment and a single
    ManagementClient is built and shared by every handler.
    """
    client: Optional[ManagementClient] = None
    if registry is None:
        settings = settings or Settings.from_env()
        client = ManagementClient(settings.api)
        reconciler = MutationReconciler(TaskStatusReader(client))
        registry = build_default_registry(client, reconciler, settings.polling)
    if settings is not None:
        configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if client is not None:
            await client.aclose()

    app = FastAPI(
        title="YBM Control API",
        description="Lifecycle operations for managed database resources",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.registry = registry

    # === ERROR MAPPING ===

    @app.exception_handler(ReconcileError)
    async def reconcile_error(request: Request, exc: ReconcileError):
        status = STATUS_BY_CATEGORY.get(exc.category, 500)
        logger.warning("%s %s failed (%s): %s", request.method, request.url.path, exc.category, exc)
        return JSONResponse(status_code=status, content=exc.to_dict())

    @app.exception_handler(UnknownResourceType)
    async def unknown_resource_type(request: Request, exc: UnknownResourceType):
        return JSONResponse(
            status_code=404,
            content={
                "category": "not_found",
                "summary": "Unknown resource type",
                "detail": f"No resource type named {exc.args[0]}",
            },
        )

    @app.exception_handler(ValidationError)
    async def invalid_payload(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=422,
            content={
                "category": "rejected",
                "summary": "Invalid resource configuration",
                "detail": str(exc),
            },
        )

    # === RESOURCES ===

    @app.get("/resources")
    def list_resource_types():
        """Registered resource types."""
        return {"resource_types": registry.types()}

    @app.post("/resources/{resource_type}/create")
    async def create_resource(resource_type: str, body: dict, request: Request):
        """Create a resource and wait until the remote has finished."""
        result = await dispatch_request(registry, request, resource_type, "create", body)
        return result.model_dump(mode="json")

    @app.post("/resources/{resource_type}/read")
    async def read_resource(resource_type: str, body: dict, request: Request):
        """Refresh a resource from the remote."""
        result = await dispatch_request(registry, request, resource_type, "read", body)
        if result is None:
            return JSONResponse(
                status_code=404,
                content={
                    "category": "not_found",
                    "summary": "Resource no longer exists",
                    "detail": f"The {resource_type} was deleted outside of this client.",
                },
            )
        return result.model_dump(mode="json")

    @app.post("/resources/{resource_type}/update")
    async def update_resource(resource_type: str, req: UpdateRequest, request: Request):
        """Apply a new plan to an existing resource."""
        result = await dispatch_request(
            registry, request, resource_type, "update", req.model_dump()
        )
        return result.model_dump(mode="json")

    @app.post("/resources/{resource_type}/delete")
    async def delete_resource(resource_type: str, body: dict, request: Request):
        """Delete a resource and wait until the remote confirms."""
        await dispatch_request(registry, request, resource_type, "delete", body)
        return {"status": "deleted", "resource_type": resource_type}

    return app
