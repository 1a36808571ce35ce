"""
Cluster-attached telemetry: DB audit logging, DB query logging and the
metrics exporter. All three associate an integration with a cluster and
differ only in the remote collection and the task kinds they wait on.
"""

from ybm_control.client.api import scope_path
from ybm_control.errors import NotFoundError
from ybm_control.models.task import EntityType, OperationKind
from ybm_control.models.telemetry import ClusterTelemetryConfig
from ybm_control.resources.base import ResourceHandler
from ybm_control.resources.common import created_id


class ClusterTelemetryHandler(ResourceHandler[ClusterTelemetryConfig]):
    model = ClusterTelemetryConfig
    id_field = "config_id"

    collection: str = ""
    enable_kind: OperationKind
    edit_kind: OperationKind
    disable_kind: OperationKind

    def _path(self, account_id: str, project_id: str, cluster_id: str, *parts: str) -> str:
        return scope_path(account_id, project_id, "clusters", cluster_id, self.collection, *parts)

    def _body(self, plan: ClusterTelemetryConfig) -> dict:
        return {"exporter_id": plan.integration_id, "config": dict(plan.log_config)}

    async def _run(self, state, kind, submit, read, verb):
        return await self.reconciler.reconcile(
            self.describe(state.account_id, state.project_id, EntityType.CLUSTER, kind, state.cluster_id),
            self.policy(kind),
            submit,
            read,
            action=f"{self.label} {verb}",
            summary=f"Unable to {verb} {self.label}:",
        )

    async def create(self, plan: ClusterTelemetryConfig) -> ClusterTelemetryConfig:
        account_id, project_id = await self.scope(plan)
        scoped = plan.model_copy(update={"account_id": account_id, "project_id": project_id})

        async def submit() -> str:
            created = await self.client.post(
                self._path(account_id, project_id, plan.cluster_id), self._body(plan)
            )
            return created_id(created, f"Unable to enable {self.label}:")

        async def read(config_id: str) -> ClusterTelemetryConfig:
            return await self.fetch(scoped.model_copy(update={"config_id": config_id}))

        return await self._run(scoped, self.enable_kind, submit, read, "enable")

    async def update(
        self, plan: ClusterTelemetryConfig, state: ClusterTelemetryConfig
    ) -> ClusterTelemetryConfig:
        async def submit() -> None:
            await self.client.put(
                self._path(state.account_id, state.project_id, state.cluster_id, state.config_id),
                self._body(plan),
            )

        prior = plan.model_copy(update={
            "account_id": state.account_id,
            "project_id": state.project_id,
            "config_id": state.config_id,
        })
        return await self._run(state, self.edit_kind, submit, lambda _: self.fetch(prior), "update")

    async def delete(self, state: ClusterTelemetryConfig) -> None:
        async def submit() -> None:
            await self.client.delete(
                self._path(state.account_id, state.project_id, state.cluster_id, state.config_id)
            )

        await self._run(state, self.disable_kind, submit, None, "disable")

    async def fetch(self, state: ClusterTelemetryConfig) -> ClusterTelemetryConfig:
        configs = await self.remote_get(
            self._path(state.account_id, state.project_id, state.cluster_id)
        ) or []
        for config in configs:
            info = config.get("info") or {}
            if info.get("id") != state.config_id:
                continue
            spec = config.get("spec") or {}
            return ClusterTelemetryConfig(
                account_id=state.account_id,
                project_id=state.project_id,
                cluster_id=state.cluster_id,
                integration_id=spec.get("exporter_id", state.integration_id),
                config_id=state.config_id,
                log_config=spec.get("config") or {},
                state=info.get("state"),
            )
        raise NotFoundError(
            f"The {self.label} was not found.",
            f"No {self.label} {state.config_id} on cluster {state.cluster_id}.",
        )


class DbAuditLoggingHandler(ClusterTelemetryHandler):
    type_name = "db_audit_logging"
    label = "DB audit logging"
    collection = "db-audit-log-exporter-configs"
    enable_kind = OperationKind.ENABLE_DATABASE_AUDIT_LOGGING
    edit_kind = OperationKind.EDIT_DATABASE_AUDIT_LOGGING
    disable_kind = OperationKind.DISABLE_DATABASE_AUDIT_LOGGING


class DbQueryLoggingHandler(ClusterTelemetryHandler):
    type_name = "db_query_logging"
    label = "DB query logging"
    collection = "db-query-log-exporter-configs"
    enable_kind = OperationKind.ENABLE_DATABASE_QUERY_LOGGING
    edit_kind = OperationKind.EDIT_DATABASE_QUERY_LOGGING
    disable_kind = OperationKind.DISABLE_DATABASE_QUERY_LOGGING


class MetricsExporterHandler(ClusterTelemetryHandler):
    type_name = "metrics_exporter"
    label = "metrics exporter"
    collection = "metrics-exporter-configs"
    enable_kind = OperationKind.CONFIGURE_METRICS_EXPORTER
    edit_kind = OperationKind.CONFIGURE_METRICS_EXPORTER
    disable_kind = OperationKind.REMOVE_METRICS_EXPORTER
