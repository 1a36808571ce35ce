"""Private service endpoints of a cluster region. Confirmed by the endpoint's state."""

from typing import Optional

from ybm_control.client.api import scope_path
from ybm_control.models.network import PrivateServiceEndpoint
from ybm_control.models.task import EntityType, OperationKind, TaskStatus
from ybm_control.reconciler.loop import passthrough
from ybm_control.reconciler.status import EntityStateProbe
from ybm_control.resources.base import ResourceHandler
from ybm_control.resources.common import created_id


class PrivateEndpointHandler(ResourceHandler[PrivateServiceEndpoint]):
    type_name = "private_service_endpoint"
    model = PrivateServiceEndpoint
    label = "private service endpoint"
    id_field = "endpoint_id"

    def _path(self, account_id: str, project_id: str, cluster_id: str, *parts: str) -> str:
        return scope_path(
            account_id, project_id, "clusters", cluster_id, "private-service-endpoints", *parts
        )

    def _body(self, plan: PrivateServiceEndpoint) -> dict:
        body = {"region": plan.region, "security_principals": list(plan.security_principals)}
        if plan.availability_zones:
            body["availability_zones"] = list(plan.availability_zones)
        return body

    def _ready_probe(self, account_id: str, project_id: str, cluster_id: str, endpoint_id: str):
        return EntityStateProbe(
            lambda: self._state(account_id, project_id, cluster_id, endpoint_id),
            succeeded=("ENABLED",),
            failed=("FAILED",),
        )

    async def create(self, plan: PrivateServiceEndpoint) -> PrivateServiceEndpoint:
        summary = "Unable to create private service endpoint:"
        account_id, project_id = await self.scope(plan)

        async def submit() -> str:
            created = await self.client.post(
                self._path(account_id, project_id, plan.cluster_id), self._body(plan)
            )
            return created_id(created, summary)

        endpoint_id = await self.reconciler.reconcile(
            self.describe(
                account_id, project_id, EntityType.PRIVATE_SERVICE_ENDPOINT,
                OperationKind.CREATE_PRIVATE_ENDPOINT,
            ),
            self.policy(OperationKind.CREATE_PRIVATE_ENDPOINT),
            submit,
            passthrough,
            action="private service endpoint creation",
            summary=summary,
            probe=lambda d: self._ready_probe(account_id, project_id, plan.cluster_id, d.entity_id),
        )
        prior = plan.model_copy(
            update={"account_id": account_id, "project_id": project_id, "endpoint_id": endpoint_id}
        )
        return await self.reconciler.confirm(
            lambda: self.fetch(prior), action="private service endpoint creation", summary=summary
        )

    async def update(
        self, plan: PrivateServiceEndpoint, state: PrivateServiceEndpoint
    ) -> PrivateServiceEndpoint:
        account_id, project_id = state.account_id, state.project_id
        cluster_id, endpoint_id = state.cluster_id, state.endpoint_id

        async def submit() -> None:
            await self.client.put(
                self._path(account_id, project_id, cluster_id, endpoint_id), self._body(plan)
            )

        prior = plan.model_copy(
            update={"account_id": account_id, "project_id": project_id, "endpoint_id": endpoint_id}
        )
        return await self.reconciler.reconcile(
            self.describe(
                account_id, project_id, EntityType.PRIVATE_SERVICE_ENDPOINT,
                OperationKind.EDIT_PRIVATE_ENDPOINT, endpoint_id,
            ),
            self.policy(OperationKind.EDIT_PRIVATE_ENDPOINT),
            submit,
            lambda _: self.fetch(prior),
            action="private service endpoint edit",
            summary="Unable to update private service endpoint:",
            probe=lambda d: self._ready_probe(account_id, project_id, cluster_id, endpoint_id),
        )

    async def delete(self, state: PrivateServiceEndpoint) -> None:
        account_id, project_id = state.account_id, state.project_id
        cluster_id, endpoint_id = state.cluster_id, state.endpoint_id

        async def submit() -> None:
            await self.client.delete(self._path(account_id, project_id, cluster_id, endpoint_id))

        await self.reconciler.reconcile(
            self.describe(
                account_id, project_id, EntityType.PRIVATE_SERVICE_ENDPOINT,
                OperationKind.DELETE_PRIVATE_ENDPOINT, endpoint_id,
            ),
            self.policy(OperationKind.DELETE_PRIVATE_ENDPOINT),
            submit,
            action="private service endpoint deletion",
            summary="Unable to delete private service endpoint:",
            probe=lambda d: EntityStateProbe(
                lambda: self._state(account_id, project_id, cluster_id, endpoint_id),
                succeeded=("DELETED",),
                failed=("FAILED",),
                gone=TaskStatus.SUCCEEDED,
            ),
        )

    async def fetch(self, state: PrivateServiceEndpoint) -> PrivateServiceEndpoint:
        data = await self.remote_get(
            self._path(state.account_id, state.project_id, state.cluster_id, state.endpoint_id)
        )
        spec = data.get("spec") or {}
        info = data.get("info") or {}
        return PrivateServiceEndpoint(
            account_id=state.account_id,
            project_id=state.project_id,
            cluster_id=state.cluster_id,
            endpoint_id=state.endpoint_id,
            region=spec.get("region", state.region),
            security_principals=spec.get("security_principals") or [],
            service_name=info.get("service_name"),
            availability_zones=info.get("availability_zones") or [],
            state=info.get("state"),
        )

    async def _state(
        self, account_id: str, project_id: str, cluster_id: str, endpoint_id: str
    ) -> Optional[str]:
        data = await self.client.get(self._path(account_id, project_id, cluster_id, endpoint_id))
        return ((data or {}).get("info") or {}).get("state")
