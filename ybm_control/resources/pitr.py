"""
Point-in-time recovery: per-namespace PITR configs, plus one-shot restores
and clones. All of them run as tasks on the owning cluster.
"""

import logging

from ybm_control.client.api import ApiError, scope_path
from ybm_control.errors import RejectedError, UnsupportedOperationError
from ybm_control.models.data_protection import PitrClone, PitrConfig, PitrRestore
from ybm_control.models.task import EntityType, OperationKind
from ybm_control.resources.base import ResourceHandler
from ybm_control.resources.common import created_id, find_namespace

logger = logging.getLogger(__name__)


class _ClusterTaskHandler(ResourceHandler):
    """Handlers whose remote work runs as a task on a cluster."""

    async def run_cluster_task(
        self, account_id, project_id, cluster_id, kind, submit, read, action, summary
    ):
        return await self.reconciler.reconcile(
            self.describe(account_id, project_id, EntityType.CLUSTER, kind, cluster_id),
            self.policy(kind),
            submit,
            read,
            action=action,
            summary=summary,
        )

    async def lookup_namespace(self, account_id, project_id, cluster_id, name, namespace_type, summary):
        try:
            namespace = await find_namespace(
                self.client, account_id, project_id, cluster_id, name, namespace_type
            )
        except ApiError as exc:
            raise RejectedError(summary, exc.detail) from exc
        if namespace is None:
            raise RejectedError(
                summary, f"No {namespace_type} namespace named {name} in cluster {cluster_id}."
            )
        return namespace


class PitrConfigHandler(_ClusterTaskHandler):
    type_name = "pitr_config"
    model = PitrConfig
    label = "PITR config"
    id_field = "pitr_config_id"

    def _path(self, account_id, project_id, cluster_id, *parts):
        return scope_path(account_id, project_id, "clusters", cluster_id, "pitr-configs", *parts)

    async def create(self, plan: PitrConfig) -> PitrConfig:
        summary = "Unable to create PITR config:"
        account_id, project_id = await self.scope(plan)
        namespace = await self.lookup_namespace(
            account_id, project_id, plan.cluster_id,
            plan.namespace_name, plan.namespace_type, summary,
        )

        async def submit() -> str:
            created = await self.client.post(
                self._path(account_id, project_id, plan.cluster_id),
                {
                    "pitr_config_specs": [{
                        "namespace_name": plan.namespace_name,
                        "database_type": plan.namespace_type,
                        "retention_period": plan.retention_period_in_days,
                    }]
                },
            )
            return created_id(created, summary)

        async def read(pitr_config_id: str) -> PitrConfig:
            return await self.fetch(plan.model_copy(update={
                "account_id": account_id,
                "project_id": project_id,
                "pitr_config_id": pitr_config_id,
                "namespace_id": namespace.get("id"),
            }))

        return await self.run_cluster_task(
            account_id, project_id, plan.cluster_id, OperationKind.BULK_ENABLE_DB_PITR,
            submit, read, "PITR config creation", summary,
        )

    async def update(self, plan: PitrConfig, state: PitrConfig) -> PitrConfig:
        if (plan.namespace_name, plan.namespace_type) != (state.namespace_name, state.namespace_type):
            raise UnsupportedOperationError(
                "Unable to update PITR config.",
                "Only the retention period of a PITR config can be changed.",
            )

        async def submit() -> None:
            await self.client.put(
                self._path(state.account_id, state.project_id, state.cluster_id, state.pitr_config_id),
                {"retention_period": plan.retention_period_in_days},
            )

        return await self.run_cluster_task(
            state.account_id, state.project_id, state.cluster_id, OperationKind.UPDATE_DB_PITR,
            submit, lambda _: self.fetch(state), "PITR config update",
            "Unable to update PITR config:",
        )

    async def delete(self, state: PitrConfig) -> None:
        async def submit() -> None:
            await self.client.delete(
                self._path(state.account_id, state.project_id, state.cluster_id, state.pitr_config_id)
            )

        await self.run_cluster_task(
            state.account_id, state.project_id, state.cluster_id, OperationKind.DISABLE_DB_PITR,
            submit, None, "PITR config removal", "Unable to remove PITR config:",
        )

    async def fetch(self, state: PitrConfig) -> PitrConfig:
        data = await self.remote_get(
            self._path(state.account_id, state.project_id, state.cluster_id, state.pitr_config_id)
        )
        spec = data.get("spec") or {}
        info = data.get("info") or {}
        return PitrConfig(
            account_id=state.account_id,
            project_id=state.project_id,
            cluster_id=state.cluster_id,
            pitr_config_id=state.pitr_config_id,
            namespace_name=spec.get("namespace_name", state.namespace_name),
            namespace_type=spec.get("database_type", state.namespace_type),
            namespace_id=info.get("namespace_id", state.namespace_id),
            retention_period_in_days=spec.get("retention_period", state.retention_period_in_days),
            state=info.get("state"),
            earliest_recovery_time_millis=info.get("earliest_possible_restore_time_millis"),
            latest_recovery_time_millis=info.get("latest_possible_restore_time_millis"),
        )


class PitrRestoreHandler(_ClusterTaskHandler):
    """A restore has no remote representation once it finishes; reads echo the state."""

    type_name = "pitr_restore"
    model = PitrRestore
    label = "PITR restore"

    async def create(self, plan: PitrRestore) -> PitrRestore:
        account_id, project_id = await self.scope(plan)
        body = {}
        if plan.restore_at_millis is not None:
            body["restore_at_millis"] = plan.restore_at_millis

        async def submit() -> None:
            await self.client.post(
                scope_path(
                    account_id, project_id, "clusters", plan.cluster_id,
                    "pitr-configs", plan.pitr_config_id, "restore",
                ),
                body,
            )

        await self.run_cluster_task(
            account_id, project_id, plan.cluster_id, OperationKind.RESTORE_DB_PITR,
            submit, None, "PITR restore", "Unable to restore via PITR:",
        )
        return plan.model_copy(update={"account_id": account_id, "project_id": project_id})

    async def delete(self, state: PitrRestore) -> None:
        raise UnsupportedOperationError(
            "Unable to delete PITR restore.", "Deleting PITR restores is not supported."
        )

    async def fetch(self, state: PitrRestore) -> PitrRestore:
        return state


class PitrCloneHandler(_ClusterTaskHandler):
    type_name = "pitr_clone"
    model = PitrClone
    label = "PITR clone"

    async def create(self, plan: PitrClone) -> PitrClone:
        summary = "Unable to clone namespace:"
        account_id, project_id = await self.scope(plan)
        source = await self.lookup_namespace(
            account_id, project_id, plan.cluster_id,
            plan.namespace_name, plan.namespace_type, summary,
        )
        body = {"source_namespace_id": source.get("id"), "clone_as": plan.clone_as}
        if plan.clone_at_millis is not None:
            body["clone_at_millis"] = plan.clone_at_millis

        async def submit() -> str:
            cloned = await self.client.post(
                scope_path(account_id, project_id, "clusters", plan.cluster_id, "namespaces", "clone"),
                body,
            )
            return (cloned or {}).get("namespace_id")

        async def read(cloned_namespace_id):
            return plan.model_copy(update={
                "account_id": account_id,
                "project_id": project_id,
                "cloned_namespace_id": cloned_namespace_id,
            })

        return await self.run_cluster_task(
            account_id, project_id, plan.cluster_id, OperationKind.CLONE_DB_PITR,
            submit, read, "namespace clone", summary,
        )

    async def delete(self, state: PitrClone) -> None:
        raise UnsupportedOperationError(
            "Unable to delete PITR clone.", "Deleting PITR clones is not supported."
        )

    async def fetch(self, state: PitrClone) -> PitrClone:
        return state
