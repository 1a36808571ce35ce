"""
Resource handlers — the four lifecycle entry points per resource type.

Behavioral Contract:
- Each handler exposes exactly create, read, update and delete.
- Mutations go through the shared MutationReconciler; handlers supply only
  the request closures, the read closure and the operation kind.
- read() returns None when the remote entity is gone, so the host drops it
  from its state instead of treating the disappearance as an error.
- Handlers never persist anything between calls. The host owns state.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Generic, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel

from ybm_control.client.api import ApiError, ManagementClient
from ybm_control.config import PollingSettings
from ybm_control.errors import (
    NotFoundError,
    StatusUnavailableError,
    UnsupportedOperationError,
)
from ybm_control.models.reconciler import RetryPolicy
from ybm_control.models.task import EntityType, OperationDescriptor, OperationKind
from ybm_control.reconciler.loop import MutationReconciler
from ybm_control.reconciler.policies import policy_for
from ybm_control.resources.common import resolve_scope

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class ResourceHandler(ABC, Generic[M]):
    """Base class for one resource type."""

    type_name: str = ""
    model: Type[BaseModel] = BaseModel
    label: str = "resource"
    id_field: Optional[str] = None

    def __init__(
        self,
        client: ManagementClient,
        reconciler: MutationReconciler,
        polling: Optional[PollingSettings] = None,
    ):
        self.client = client
        self.reconciler = reconciler
        self.polling = polling

    # --- Lifecycle entry points ---

    @abstractmethod
    async def create(self, plan: M) -> M:
        ...

    async def read(self, state: M) -> Optional[M]:
        """Refresh `state` from the remote. None when the entity no longer exists."""
        try:
            return await self.fetch(state)
        except NotFoundError:
            logger.info("%s no longer exists remotely, dropping it", self.label)
            return None
        except ApiError as exc:
            raise StatusUnavailableError(
                f"Unable to read the state of the {self.label}.", exc.detail
            ) from exc

    async def update(self, plan: M, state: M) -> M:
        raise UnsupportedOperationError(
            f"Unable to update {self.label}.",
            f"Updating {self.label} is not supported.",
        )

    @abstractmethod
    async def delete(self, state: M) -> None:
        ...

    # --- Read adapter ---

    @abstractmethod
    async def fetch(self, state: M) -> M:
        """Read the remote entity into the local model. Raises NotFoundError when gone."""

    # --- Helpers shared by handlers ---

    def parse(self, payload: Any) -> M:
        return self.model.model_validate(payload)

    def identity(self, resource: BaseModel) -> Optional[str]:
        """Remote id of `resource`, or None before it exists."""
        if self.id_field is None:
            return None
        return getattr(resource, self.id_field, None)

    def policy(self, kind: OperationKind) -> RetryPolicy:
        return policy_for(kind, self.polling)

    async def scope(self, resource: BaseModel) -> Tuple[str, str]:
        return await resolve_scope(
            self.client,
            getattr(resource, "account_id", None),
            getattr(resource, "project_id", None),
        )

    @staticmethod
    def describe(
        account_id: str,
        project_id: str,
        entity_type: EntityType,
        kind: OperationKind,
        entity_id: Optional[str] = None,
    ) -> OperationDescriptor:
        return OperationDescriptor(
            account_id=account_id,
            project_id=project_id,
            entity_id=entity_id,
            entity_type=entity_type,
            kind=kind,
        )

    async def remote_get(self, path: str, **params: Any) -> Any:
        """GET that maps 404 to NotFoundError and other failures to StatusUnavailableError."""
        try:
            return await self.client.get(path, **params)
        except ApiError as exc:
            if exc.not_found:
                raise NotFoundError(f"The {self.label} was not found.", exc.detail) from exc
            raise StatusUnavailableError(
                f"Unable to read the state of the {self.label}.", exc.detail
            ) from exc
