"""
Resource Registry — routes host lifecycle calls to the handler for a resource type.

Behavioral Contract:
- Exactly four operations per resource type: create, read, update, delete.
- Payloads are validated into the handler's model before any remote call.
- At most one operation is in flight per (resource type, entity id). A second
  update/delete/read for the same entity is refused with ConflictError
  instead of being reconciled concurrently.
- A cancel_event passed to dispatch() cancels the running handler call,
  wherever it is waiting (a remote call, a status poll or a sleep), and
  the caller gets OperationCancelledError. The in-flight slot is released.
"""

import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from pydantic import BaseModel

from ybm_control.client.api import ManagementClient
from ybm_control.config import PollingSettings
from ybm_control.errors import ConflictError, OperationCancelledError
from ybm_control.reconciler.backoff import CancelSignal, cancellable
from ybm_control.reconciler.loop import MutationReconciler
from ybm_control.resources.allow_list import AllowListHandler
from ybm_control.resources.backup import BackupHandler
from ybm_control.resources.base import ResourceHandler
from ybm_control.resources.cluster import ClusterHandler
from ybm_control.resources.dr_config import DrConfigHandler
from ybm_control.resources.pitr import PitrCloneHandler, PitrConfigHandler, PitrRestoreHandler
from ybm_control.resources.private_endpoint import PrivateEndpointHandler
from ybm_control.resources.read_replica import ReadReplicaHandler
from ybm_control.resources.telemetry import (
    DbAuditLoggingHandler,
    DbQueryLoggingHandler,
    MetricsExporterHandler,
)
from ybm_control.resources.vpc import VpcHandler

logger = logging.getLogger(__name__)

OPERATIONS = ("create", "read", "update", "delete")

DEFAULT_HANDLERS = (
    ClusterHandler,
    AllowListHandler,
    BackupHandler,
    PitrConfigHandler,
    PitrRestoreHandler,
    PitrCloneHandler,
    DrConfigHandler,
    PrivateEndpointHandler,
    VpcHandler,
    ReadReplicaHandler,
    DbAuditLoggingHandler,
    DbQueryLoggingHandler,
    MetricsExporterHandler,
)


class UnknownResourceType(LookupError):
    """No handler is registered for the requested resource type."""


class ResourceRegistry:
    """Holds one handler per resource type and guards entities against overlapping calls."""

    def __init__(self) -> None:
        self._handlers: Dict[str, ResourceHandler] = {}
        self._in_flight: Set[Tuple[str, str]] = set()

    def register(self, handler: ResourceHandler) -> None:
        self._handlers[handler.type_name] = handler

    def get(self, type_name: str) -> ResourceHandler:
        handler = self._handlers.get(type_name)
        if handler is None:
            raise UnknownResourceType(type_name)
        return handler

    def types(self) -> List[str]:
        return sorted(self._handlers)

    def in_flight(self) -> List[Tuple[str, str]]:
        return sorted(self._in_flight)

    async def dispatch(
        self,
        type_name: str,
        operation: str,
        payload: Any,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[BaseModel]:
        """
        Run one lifecycle operation. `payload` is the desired config for
        create, the prior state for read/delete, and {"plan", "state"} for
        update.
        """
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation: {operation}")
        handler = self.get(type_name)

        if operation == "update":
            plan = handler.parse(payload["plan"])
            state = handler.parse(payload["state"])
            start = lambda: handler.update(plan, state)
        else:
            state = handler.parse(payload)
            start = lambda: getattr(handler, operation)(state)

        logger.debug("%s %s", operation, type_name)
        with self._guard(handler, state):
            try:
                return await cancellable(start(), cancel_event)
            except CancelSignal as exc:
                logger.info("%s %s cancelled", operation, type_name)
                raise OperationCancelledError(
                    f"Unable to {operation} {handler.label}:",
                    f"The {operation} was cancelled before it finished. "
                    "The remote outcome is unknown.",
                ) from exc

    @contextmanager
    def _guard(self, handler: ResourceHandler, resource: BaseModel) -> Iterator[None]:
        entity_id = handler.identity(resource)
        if entity_id is None:
            yield
            return

        key = (handler.type_name, entity_id)
        if key in self._in_flight:
            raise ConflictError(
                f"Unable to modify {handler.label}:",
                f"Another operation on {handler.label} {entity_id} is still in progress.",
            )
        self._in_flight.add(key)
        try:
            yield
        finally:
            self._in_flight.discard(key)


def build_default_registry(
    client: ManagementClient,
    reconciler: MutationReconciler,
    polling: Optional[PollingSettings] = None,
) -> ResourceRegistry:
    registry = ResourceRegistry()
    for handler_cls in DEFAULT_HANDLERS:
        registry.register(handler_cls(client, reconciler, polling))
    return registry
