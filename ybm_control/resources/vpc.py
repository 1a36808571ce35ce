"""Dedicated VPCs. Creation waits for ACTIVE; deletion is confirmed by a 404."""

from typing import List, Optional

from ybm_control.client.api import scope_path
from ybm_control.errors import RejectedError
from ybm_control.models.network import Vpc, VpcRegionCidr
from ybm_control.models.task import EntityType, OperationKind, TaskStatus
from ybm_control.reconciler.loop import passthrough
from ybm_control.reconciler.status import EntityStateProbe
from ybm_control.resources.base import ResourceHandler
from ybm_control.resources.common import created_id


class VpcHandler(ResourceHandler[Vpc]):
    type_name = "vpc"
    model = Vpc
    label = "VPC"
    id_field = "vpc_id"

    async def create(self, plan: Vpc) -> Vpc:
        summary = "Unable to create VPC:"
        if bool(plan.global_cidr) == bool(plan.region_cidr_info):
            raise RejectedError(
                summary, "Specify either global_cidr or region_cidr_info, but not both."
            )
        account_id, project_id = await self.scope(plan)

        async def submit() -> str:
            spec = {"name": plan.name, "cloud": plan.cloud}
            if plan.global_cidr:
                spec["parent_cidr"] = plan.global_cidr
            else:
                spec["region_specs"] = [r.model_dump(exclude_none=True) for r in plan.region_cidr_info]
            created = await self.client.post(scope_path(account_id, project_id, "vpcs"), {"spec": spec})
            return created_id(created, summary)

        vpc_id = await self.reconciler.reconcile(
            self.describe(account_id, project_id, EntityType.VPC, OperationKind.CREATE_VPC),
            self.policy(OperationKind.CREATE_VPC),
            submit,
            passthrough,
            action="VPC creation",
            summary=summary,
            probe=lambda d: EntityStateProbe(
                lambda: self._state(account_id, project_id, d.entity_id),
                succeeded=("ACTIVE",),
                failed=("FAILED",),
            ),
        )
        prior = plan.model_copy(
            update={"account_id": account_id, "project_id": project_id, "vpc_id": vpc_id}
        )
        return await self.reconciler.confirm(
            lambda: self.fetch(prior), action="VPC creation", summary=summary
        )

    async def delete(self, state: Vpc) -> None:
        account_id, project_id, vpc_id = state.account_id, state.project_id, state.vpc_id

        async def submit() -> None:
            await self.client.delete(scope_path(account_id, project_id, "vpcs", vpc_id))

        await self.reconciler.reconcile(
            self.describe(account_id, project_id, EntityType.VPC, OperationKind.DELETE_VPC, vpc_id),
            self.policy(OperationKind.DELETE_VPC),
            submit,
            action="VPC deletion",
            summary="Unable to delete VPC:",
            probe=lambda d: EntityStateProbe(
                lambda: self._state(account_id, project_id, vpc_id),
                succeeded=(),
                gone=TaskStatus.SUCCEEDED,
            ),
        )

    async def fetch(self, state: Vpc) -> Vpc:
        data = await self.remote_get(
            scope_path(state.account_id, state.project_id, "vpcs", state.vpc_id)
        )
        spec = data.get("spec") or {}
        info = data.get("info") or {}

        region_cidr_info = None
        if not state.global_cidr:
            observed = [
                VpcRegionCidr(region=r.get("region", ""), cidr=r.get("cidr"))
                for r in spec.get("region_specs") or []
            ]
            region_cidr_info = _order_regions(state.region_cidr_info, observed)

        return Vpc(
            account_id=state.account_id,
            project_id=state.project_id,
            vpc_id=state.vpc_id,
            name=spec.get("name", state.name),
            cloud=spec.get("cloud", state.cloud),
            global_cidr=state.global_cidr,
            region_cidr_info=region_cidr_info,
            external_vpc_id=info.get("external_vpc_id"),
            state=info.get("state"),
        )

    async def _state(self, account_id: str, project_id: str, vpc_id: str) -> Optional[str]:
        data = await self.client.get(scope_path(account_id, project_id, "vpcs", vpc_id))
        return ((data or {}).get("info") or {}).get("state")


def _order_regions(
    preferred: Optional[List[VpcRegionCidr]],
    observed: List[VpcRegionCidr],
) -> List[VpcRegionCidr]:
    """Keep the caller's region order. A region the caller gave without a CIDR keeps the assigned one."""
    if not preferred:
        return observed
    by_region = {r.region: r for r in observed}
    if set(by_region) != {r.region for r in preferred}:
        return observed
    return [by_region[r.region] for r in preferred]
