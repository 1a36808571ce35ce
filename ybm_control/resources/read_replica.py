"""
Read replicas of a primary cluster, managed together as one resource.

No task is tracked: each mutation is confirmed by the primary cluster
returning to ACTIVE.
"""

from typing import List

from ybm_control.client.api import scope_path
from ybm_control.errors import NotFoundError
from ybm_control.models.cluster import ReadReplicaInfo, ReadReplicas
from ybm_control.models.task import EntityType, OperationKind
from ybm_control.resources.base import ResourceHandler
from ybm_control.resources.common import cluster_state_probe


def _replica_spec(replica: ReadReplicaInfo) -> dict:
    placement = {"cloud_info": {"region": replica.region}, "num_nodes": replica.num_nodes}
    if replica.vpc_id:
        placement["vpc_id"] = replica.vpc_id
    node_info = {"num_cores": replica.num_cores}
    if replica.disk_size_gb is not None:
        node_info["disk_size_gb"] = replica.disk_size_gb
    return {"placement_info": placement, "node_info": node_info}


class ReadReplicaHandler(ResourceHandler[ReadReplicas]):
    type_name = "read_replicas"
    model = ReadReplicas
    label = "read replicas"
    id_field = "primary_cluster_id"

    async def create(self, plan: ReadReplicas) -> ReadReplicas:
        account_id, project_id = await self.scope(plan)
        return await self._apply(
            account_id, project_id, plan, "POST", OperationKind.CREATE_READ_REPLICA,
            "read replica creation", "Unable to create read replicas:",
        )

    async def update(self, plan: ReadReplicas, state: ReadReplicas) -> ReadReplicas:
        return await self._apply(
            state.account_id, state.project_id, plan, "PUT", OperationKind.EDIT_READ_REPLICA,
            "read replica edit", "Unable to update read replicas:",
        )

    async def delete(self, state: ReadReplicas) -> None:
        account_id, project_id, cluster_id = state.account_id, state.project_id, state.primary_cluster_id

        async def submit() -> None:
            await self.client.delete(
                scope_path(account_id, project_id, "clusters", cluster_id, "read-replicas")
            )

        await self.reconciler.reconcile(
            self.describe(
                account_id, project_id, EntityType.CLUSTER,
                OperationKind.DELETE_READ_REPLICA, cluster_id,
            ),
            self.policy(OperationKind.DELETE_READ_REPLICA),
            submit,
            action="read replica deletion",
            summary="Unable to delete read replicas:",
            probe=lambda d: cluster_state_probe(
                self.client, account_id, project_id, cluster_id, succeeded=("ACTIVE",)
            ),
        )

    async def fetch(self, state: ReadReplicas) -> ReadReplicas:
        replicas = await self.remote_get(
            scope_path(
                state.account_id, state.project_id,
                "clusters", state.primary_cluster_id, "read-replicas",
            )
        ) or []
        if not replicas:
            raise NotFoundError(
                "The read replicas were not found.",
                f"Cluster {state.primary_cluster_id} has no read replicas.",
            )

        observed: List[ReadReplicaInfo] = []
        for replica in replicas:
            spec = replica.get("spec") or {}
            placement = spec.get("placement_info") or {}
            node_info = spec.get("node_info") or {}
            observed.append(
                ReadReplicaInfo(
                    region=(placement.get("cloud_info") or {}).get("region", ""),
                    num_nodes=placement.get("num_nodes", 1),
                    num_cores=node_info.get("num_cores", 1),
                    disk_size_gb=node_info.get("disk_size_gb"),
                    vpc_id=placement.get("vpc_id"),
                    endpoint=(replica.get("info") or {}).get("endpoint"),
                )
            )

        rank = {r.region: i for i, r in enumerate(state.read_replicas_info)}
        observed.sort(key=lambda r: rank.get(r.region, len(rank)))
        return ReadReplicas(
            account_id=state.account_id,
            project_id=state.project_id,
            primary_cluster_id=state.primary_cluster_id,
            read_replicas_info=observed,
        )

    async def _apply(
        self,
        account_id: str,
        project_id: str,
        plan: ReadReplicas,
        method: str,
        kind: OperationKind,
        action: str,
        summary: str,
    ) -> ReadReplicas:
        cluster_id = plan.primary_cluster_id

        async def submit() -> None:
            await self.client.request(
                method,
                scope_path(account_id, project_id, "clusters", cluster_id, "read-replicas"),
                json=[_replica_spec(r) for r in plan.read_replicas_info],
            )

        prior = plan.model_copy(update={"account_id": account_id, "project_id": project_id})
        return await self.reconciler.reconcile(
            self.describe(account_id, project_id, EntityType.CLUSTER, kind, cluster_id),
            self.policy(kind),
            submit,
            lambda _: self.fetch(prior),
            action=action,
            summary=summary,
            probe=lambda d: cluster_state_probe(
                self.client, account_id, project_id, cluster_id, succeeded=("ACTIVE",)
            ),
        )
