"""Disaster recovery (xCluster DR) configs. Tasks run against the source cluster."""

from typing import Dict, List

from ybm_control.client.api import ApiError, scope_path
from ybm_control.errors import RejectedError
from ybm_control.models.data_protection import DrConfig
from ybm_control.models.task import EntityType, OperationKind
from ybm_control.resources.base import ResourceHandler
from ybm_control.resources.common import created_id, preserve_order


class DrConfigHandler(ResourceHandler[DrConfig]):
    type_name = "dr_config"
    model = DrConfig
    label = "DR config"
    id_field = "dr_config_id"

    def _path(self, account_id: str, project_id: str, cluster_id: str, *parts: str) -> str:
        return scope_path(account_id, project_id, "clusters", cluster_id, "xcluster-dr", *parts)

    async def _namespace_ids(self, account_id: str, project_id: str, cluster_id: str) -> Dict[str, str]:
        """Database name → namespace id for the YSQL databases of a cluster."""
        namespaces = await self.client.get(
            scope_path(account_id, project_id, "clusters", cluster_id, "namespaces")
        ) or []
        return {
            n["name"]: n["id"]
            for n in namespaces
            if n.get("table_type", "").upper() == "YSQL"
        }

    async def _resolve_databases(
        self, account_id: str, project_id: str, cluster_id: str, databases: List[str], summary: str
    ) -> List[str]:
        try:
            ids = await self._namespace_ids(account_id, project_id, cluster_id)
        except ApiError as exc:
            raise RejectedError(summary, exc.detail) from exc
        missing = [d for d in databases if d not in ids]
        if missing:
            raise RejectedError(
                summary, f"Databases not found in cluster {cluster_id}: {', '.join(missing)}"
            )
        return [ids[d] for d in databases]

    async def _run(self, account_id, project_id, cluster_id, kind, submit, read, action, summary):
        return await self.reconciler.reconcile(
            self.describe(account_id, project_id, EntityType.CLUSTER, kind, cluster_id),
            self.policy(kind),
            submit,
            read,
            action=action,
            summary=summary,
        )

    async def create(self, plan: DrConfig) -> DrConfig:
        summary = "Unable to create DR config:"
        account_id, project_id = await self.scope(plan)
        source = plan.source_cluster_id
        database_ids = await self._resolve_databases(
            account_id, project_id, source, plan.databases, summary
        )

        async def submit() -> str:
            created = await self.client.post(
                self._path(account_id, project_id, source),
                {
                    "name": plan.name,
                    "target_cluster_id": plan.target_cluster_id,
                    "databases": database_ids,
                },
            )
            return created_id(created, summary)

        async def read(dr_config_id: str) -> DrConfig:
            return await self.fetch(plan.model_copy(update={
                "account_id": account_id,
                "project_id": project_id,
                "dr_config_id": dr_config_id,
            }))

        return await self._run(
            account_id, project_id, source, OperationKind.CREATE_DR,
            submit, read, "DR config creation", summary,
        )

    async def update(self, plan: DrConfig, state: DrConfig) -> DrConfig:
        summary = "Unable to update DR config:"
        account_id, project_id, source = state.account_id, state.project_id, state.source_cluster_id
        database_ids = await self._resolve_databases(
            account_id, project_id, source, plan.databases, summary
        )

        async def submit() -> None:
            await self.client.put(
                self._path(account_id, project_id, source, state.dr_config_id),
                {"databases": database_ids},
            )

        prior = plan.model_copy(update={
            "account_id": account_id,
            "project_id": project_id,
            "dr_config_id": state.dr_config_id,
        })
        return await self._run(
            account_id, project_id, source, OperationKind.EDIT_DR,
            submit, lambda _: self.fetch(prior), "DR config edit", summary,
        )

    async def delete(self, state: DrConfig) -> None:
        async def submit() -> None:
            await self.client.delete(
                self._path(state.account_id, state.project_id, state.source_cluster_id, state.dr_config_id)
            )

        await self._run(
            state.account_id, state.project_id, state.source_cluster_id, OperationKind.DELETE_DR,
            submit, None, "DR config deletion", "Unable to delete DR config:",
        )

    async def fetch(self, state: DrConfig) -> DrConfig:
        data = await self.remote_get(
            self._path(state.account_id, state.project_id, state.source_cluster_id, state.dr_config_id)
        )
        spec = data.get("spec") or {}
        info = data.get("info") or {}

        ids = await self._namespace_ids(state.account_id, state.project_id, state.source_cluster_id)
        names_by_id = {v: k for k, v in ids.items()}
        databases = [names_by_id.get(i, i) for i in spec.get("databases") or []]

        return DrConfig(
            account_id=state.account_id,
            project_id=state.project_id,
            dr_config_id=state.dr_config_id,
            name=spec.get("name", state.name),
            source_cluster_id=state.source_cluster_id,
            target_cluster_id=spec.get("target_cluster_id", state.target_cluster_id),
            databases=preserve_order(state.databases, databases),
            state=info.get("state"),
        )
