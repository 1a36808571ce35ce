"""
Cluster lifecycle.

Create:  validate → CREATE_CLUSTER task → settle on ACTIVE → allow lists → pause
Update:  resume → EDIT_CLUSTER task (may spawn none) → settle → allow lists → pause
Delete:  DELETE_CLUSTER task

Credentials are write-only on the remote, so reads carry them over from the
prior state.
"""

import logging
from typing import List, Optional

from ybm_control.client.api import scope_path
from ybm_control.errors import RejectedError
from ybm_control.models.cluster import (
    Cluster,
    ClusterEndpoint,
    ClusterRegion,
    NodeConfig,
)
from ybm_control.models.task import EntityType, OperationKind
from ybm_control.reconciler.loop import passthrough
from ybm_control.reconciler.status import EditTaskProbe
from ybm_control.resources.base import ResourceHandler
from ybm_control.resources.common import b64, cluster_state_probe, created_id, preserve_order

logger = logging.getLogger(__name__)

MIN_PAID_DISK_SIZE_GB = 50


def validate_cluster(plan: Cluster) -> None:
    """Reject plans the remote would refuse, before anything is submitted."""
    if plan.cluster_tier.upper() == "PAID":
        disk = plan.node_config.disk_size_gb
        if disk is not None and disk < MIN_PAID_DISK_SIZE_GB:
            raise RejectedError(
                "Invalid disk size",
                f"The disk size for a paid cluster must be at least {MIN_PAID_DISK_SIZE_GB} GB.",
            )

    seen = set()
    for region in plan.cluster_region_info:
        if region.region in seen:
            raise RejectedError(
                "Invalid cluster region info",
                f"Region {region.region} is listed more than once.",
            )
        seen.add(region.region)


def cluster_spec(plan: Cluster) -> dict:
    """Map the local cluster model onto the remote cluster spec."""
    node_info = {"num_cores": plan.node_config.num_cores}
    if plan.node_config.disk_size_gb is not None:
        node_info["disk_size_gb"] = plan.node_config.disk_size_gb
    if plan.node_config.disk_iops is not None:
        node_info["disk_iops"] = plan.node_config.disk_iops

    regions = []
    for region in plan.cluster_region_info:
        placement = {
            "cloud_info": {"code": plan.cloud_type, "region": region.region},
            "num_nodes": region.num_nodes,
        }
        if region.vpc_id:
            placement["vpc_id"] = region.vpc_id
        regions.append({"placement_info": placement, "is_default": region.is_default})

    spec = {
        "name": plan.cluster_name,
        "cloud_info": {"code": plan.cloud_type},
        "cluster_info": {
            "cluster_tier": plan.cluster_tier,
            "cluster_type": plan.cluster_type,
            "fault_tolerance": plan.fault_tolerance,
            "num_faults_to_tolerate": plan.num_faults_to_tolerate,
            "node_info": node_info,
        },
        "cluster_region_info": regions,
    }
    if plan.database_track:
        spec["software_info"] = {"track_id": plan.database_track}
    return spec


def fill_unset(plan: Cluster, state: Cluster) -> Cluster:
    """
    Copy `plan` with its unset optional fields taken from `state`.

    Disk size, IOPS, track and region VPCs left out of a plan mean "keep
    what the remote has", not "clear it".
    """
    node_config = plan.node_config.model_copy(update={
        "disk_size_gb": plan.node_config.disk_size_gb
        if plan.node_config.disk_size_gb is not None else state.node_config.disk_size_gb,
        "disk_iops": plan.node_config.disk_iops
        if plan.node_config.disk_iops is not None else state.node_config.disk_iops,
    })
    current_vpcs = {r.region: r.vpc_id for r in state.cluster_region_info}
    regions = [
        r if r.vpc_id else r.model_copy(update={"vpc_id": current_vpcs.get(r.region)})
        for r in plan.cluster_region_info
    ]
    return plan.model_copy(update={
        "node_config": node_config,
        "cluster_region_info": regions,
        "database_track": plan.database_track or state.database_track,
    })


class ClusterHandler(ResourceHandler[Cluster]):
    type_name = "cluster"
    model = Cluster
    label = "cluster"
    id_field = "cluster_id"

    async def create(self, plan: Cluster) -> Cluster:
        summary = "Unable to create cluster:"
        if plan.cluster_id:
            raise RejectedError(
                "Cluster ID provided for new cluster",
                "The cluster_id was provided even though a new cluster is being created.",
            )
        if plan.credentials is None:
            raise RejectedError("Invalid credentials", "Please provide a username and password.")
        validate_cluster(plan)
        account_id, project_id = await self.scope(plan)

        async def submit() -> str:
            creds = {
                "username": b64(plan.credentials.username),
                "password": b64(plan.credentials.password),
            }
            created = await self.client.post(
                scope_path(account_id, project_id, "clusters"),
                {
                    "cluster_spec": cluster_spec(plan),
                    "db_credentials": {"ysql": creds, "ycql": creds},
                },
            )
            return created_id(created, summary)

        cluster_id = await self.reconciler.reconcile(
            self.describe(account_id, project_id, EntityType.CLUSTER, OperationKind.CREATE_CLUSTER),
            self.policy(OperationKind.CREATE_CLUSTER),
            submit,
            passthrough,
            action="cluster creation",
            summary=summary,
            settle=lambda d: self._settle_probe(account_id, project_id, d.entity_id),
        )

        if plan.cluster_allow_list_ids:
            await self._edit_allow_lists(
                account_id, project_id, cluster_id, plan.cluster_allow_list_ids, summary
            )
        if plan.desired_state.lower() == "paused":
            await self._pause(account_id, project_id, cluster_id, summary)

        prior = plan.model_copy(
            update={"account_id": account_id, "project_id": project_id, "cluster_id": cluster_id}
        )
        return await self.reconciler.confirm(
            lambda: self.fetch(prior), action="cluster creation", summary=summary
        )

    async def update(self, plan: Cluster, state: Cluster) -> Cluster:
        summary = "Unable to update cluster:"
        validate_cluster(plan)
        account_id, project_id, cluster_id = state.account_id, state.project_id, state.cluster_id

        if state.desired_state.lower() == "paused" and plan.desired_state.lower() == "active":
            await self._resume(account_id, project_id, cluster_id, summary)

        desired = fill_unset(plan, state)
        if cluster_spec(desired) != cluster_spec(state):
            async def submit() -> None:
                await self.client.put(
                    scope_path(account_id, project_id, "clusters", cluster_id),
                    cluster_spec(desired),
                )

            await self.reconciler.reconcile(
                self.describe(
                    account_id, project_id, EntityType.CLUSTER,
                    OperationKind.EDIT_CLUSTER, cluster_id,
                ),
                self.policy(OperationKind.EDIT_CLUSTER),
                submit,
                action="cluster edit",
                summary=summary,
                probe=lambda d: EditTaskProbe(self.reconciler.reader.probe_for(d)),
                settle=lambda d: self._settle_probe(account_id, project_id, cluster_id),
            )
        else:
            logger.debug("Cluster %s spec unchanged, skipping edit", cluster_id)

        if set(plan.cluster_allow_list_ids) != set(state.cluster_allow_list_ids):
            await self._edit_allow_lists(
                account_id, project_id, cluster_id, plan.cluster_allow_list_ids, summary
            )

        if state.desired_state.lower() == "active" and plan.desired_state.lower() == "paused":
            await self._pause(account_id, project_id, cluster_id, summary)

        prior = plan.model_copy(
            update={
                "account_id": account_id,
                "project_id": project_id,
                "cluster_id": cluster_id,
                "credentials": state.credentials,
            }
        )
        return await self.reconciler.confirm(
            lambda: self.fetch(prior), action="cluster edit", summary=summary
        )

    async def delete(self, state: Cluster) -> None:
        async def submit() -> None:
            await self.client.delete(
                scope_path(state.account_id, state.project_id, "clusters", state.cluster_id)
            )

        await self.reconciler.reconcile(
            self.describe(
                state.account_id, state.project_id, EntityType.CLUSTER,
                OperationKind.DELETE_CLUSTER, state.cluster_id,
            ),
            self.policy(OperationKind.DELETE_CLUSTER),
            submit,
            action="cluster deletion",
            summary="Unable to delete cluster:",
        )

    async def fetch(self, state: Cluster) -> Cluster:
        base = scope_path(state.account_id, state.project_id, "clusters", state.cluster_id)
        data = await self.remote_get(base)
        allow_lists = await self.remote_get(f"{base}/allow-lists") or []

        spec = data.get("spec") or {}
        info = data.get("info") or {}
        cluster_info = spec.get("cluster_info") or {}
        node_info = cluster_info.get("node_info") or {}

        regions = [_region_from_remote(r) for r in spec.get("cluster_region_info") or []]
        regions = _order_regions(state.cluster_region_info, regions)
        allow_list_ids = preserve_order(
            state.cluster_allow_list_ids,
            [(a.get("info") or {}).get("id") for a in allow_lists],
        )

        remote_state = info.get("state")
        desired = "Paused" if (remote_state or "").lower() == "paused" else "Active"
        return Cluster(
            account_id=state.account_id,
            project_id=state.project_id,
            cluster_id=state.cluster_id,
            cluster_name=spec.get("name", state.cluster_name),
            cloud_type=(spec.get("cloud_info") or {}).get("code", state.cloud_type),
            cluster_type=cluster_info.get("cluster_type", state.cluster_type),
            cluster_tier=cluster_info.get("cluster_tier", state.cluster_tier),
            fault_tolerance=cluster_info.get("fault_tolerance", state.fault_tolerance),
            num_faults_to_tolerate=cluster_info.get(
                "num_faults_to_tolerate", state.num_faults_to_tolerate
            ),
            cluster_region_info=regions,
            node_config=NodeConfig(
                num_cores=node_info.get("num_cores", state.node_config.num_cores),
                disk_size_gb=node_info.get("disk_size_gb"),
                disk_iops=node_info.get("disk_iops"),
            ),
            database_track=(spec.get("software_info") or {}).get("track_id", state.database_track),
            cluster_allow_list_ids=allow_list_ids,
            desired_state=desired,
            credentials=state.credentials,
            state=remote_state,
            cluster_version=info.get("software_version"),
            endpoints=[ClusterEndpoint(**e) for e in info.get("endpoints") or []],
        )

    # --- Steps shared by create and update ---

    def _settle_probe(self, account_id: str, project_id: str, cluster_id: str):
        # CREATE_FAILED ends the wait so the final read reports it.
        return cluster_state_probe(
            self.client, account_id, project_id, cluster_id,
            succeeded=("ACTIVE", "CREATE_FAILED", "Create Failed"),
        )

    async def _edit_allow_lists(
        self,
        account_id: str,
        project_id: str,
        cluster_id: str,
        allow_list_ids: List[str],
        summary: str,
    ) -> None:
        async def submit() -> None:
            await self.client.put(
                scope_path(account_id, project_id, "clusters", cluster_id, "allow-lists"),
                list(allow_list_ids),
            )

        await self.reconciler.reconcile(
            self.describe(
                account_id, project_id, EntityType.CLUSTER,
                OperationKind.EDIT_ALLOW_LIST, cluster_id,
            ),
            self.policy(OperationKind.EDIT_ALLOW_LIST),
            submit,
            action="allow list association",
            summary=summary,
        )

    async def _pause(self, account_id: str, project_id: str, cluster_id: str, summary: str) -> None:
        await self._transition(account_id, project_id, cluster_id, "pause", "PAUSED", summary)

    async def _resume(self, account_id: str, project_id: str, cluster_id: str, summary: str) -> None:
        await self._transition(account_id, project_id, cluster_id, "resume", "ACTIVE", summary)

    async def _transition(
        self,
        account_id: str,
        project_id: str,
        cluster_id: str,
        verb: str,
        target_state: str,
        summary: str,
    ) -> None:
        kind = OperationKind.PAUSE_CLUSTER if verb == "pause" else OperationKind.RESUME_CLUSTER

        async def submit() -> None:
            await self.client.post(
                scope_path(account_id, project_id, "clusters", cluster_id, verb)
            )

        await self.reconciler.reconcile(
            self.describe(account_id, project_id, EntityType.CLUSTER, kind, cluster_id),
            self.policy(kind),
            submit,
            action=f"cluster {verb}",
            summary=summary,
            probe=lambda d: cluster_state_probe(
                self.client, account_id, project_id, cluster_id, succeeded=(target_state,)
            ),
        )


def _region_from_remote(remote: dict) -> ClusterRegion:
    placement = remote.get("placement_info") or {}
    return ClusterRegion(
        region=(placement.get("cloud_info") or {}).get("region", ""),
        num_nodes=placement.get("num_nodes", 1),
        vpc_id=placement.get("vpc_id"),
        is_default=remote.get("is_default", False),
    )


def _order_regions(
    preferred: Optional[List[ClusterRegion]],
    observed: List[ClusterRegion],
) -> List[ClusterRegion]:
    """Report regions in the caller's order; regions it did not name go last."""
    if not preferred:
        return observed
    rank = {r.region: i for i, r in enumerate(preferred)}
    return sorted(observed, key=lambda r: rank.get(r.region, len(rank)))
