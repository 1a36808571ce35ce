"""On-demand cluster backups. Confirmed by the backup's own state, not a task."""

from typing import Optional

from ybm_control.client.api import scope_path
from ybm_control.models.data_protection import Backup
from ybm_control.models.task import EntityType, OperationKind, TaskStatus
from ybm_control.reconciler.loop import passthrough
from ybm_control.reconciler.status import EntityStateProbe
from ybm_control.resources.base import ResourceHandler
from ybm_control.resources.common import created_id


class BackupHandler(ResourceHandler[Backup]):
    type_name = "backup"
    model = Backup
    label = "backup"
    id_field = "backup_id"

    async def create(self, plan: Backup) -> Backup:
        summary = "Unable to create backup:"
        account_id, project_id = await self.scope(plan)

        async def submit() -> str:
            created = await self.client.post(
                scope_path(account_id, project_id, "backups"),
                {
                    "cluster_id": plan.cluster_id,
                    "description": plan.backup_description,
                    "retention_period_in_days": plan.retention_period_in_days,
                },
            )
            return created_id(created, summary)

        backup_id = await self.reconciler.reconcile(
            self.describe(account_id, project_id, EntityType.BACKUP, OperationKind.CREATE_BACKUP),
            self.policy(OperationKind.CREATE_BACKUP),
            submit,
            passthrough,
            action="backup creation",
            summary=summary,
            probe=lambda d: EntityStateProbe(
                lambda: self._state(account_id, project_id, d.entity_id),
                succeeded=("SUCCEEDED",),
                failed=("FAILED",),
            ),
        )
        prior = plan.model_copy(
            update={"account_id": account_id, "project_id": project_id, "backup_id": backup_id}
        )
        return await self.reconciler.confirm(
            lambda: self.fetch(prior), action="backup creation", summary=summary
        )

    async def delete(self, state: Backup) -> None:
        account_id, project_id, backup_id = state.account_id, state.project_id, state.backup_id

        async def submit() -> None:
            await self.client.delete(scope_path(account_id, project_id, "backups", backup_id))

        await self.reconciler.reconcile(
            self.describe(
                account_id, project_id, EntityType.BACKUP, OperationKind.DELETE_BACKUP, backup_id
            ),
            self.policy(OperationKind.DELETE_BACKUP),
            submit,
            action="backup deletion",
            summary="Unable to delete backup:",
            probe=lambda d: EntityStateProbe(
                lambda: self._state(account_id, project_id, backup_id),
                succeeded=(),
                failed=("FAILED",),
                gone=TaskStatus.SUCCEEDED,
            ),
        )

    async def fetch(self, state: Backup) -> Backup:
        data = await self.remote_get(
            scope_path(state.account_id, state.project_id, "backups", state.backup_id)
        )
        spec = data.get("spec") or {}
        info = data.get("info") or {}
        return Backup(
            account_id=state.account_id,
            project_id=state.project_id,
            backup_id=state.backup_id,
            cluster_id=spec.get("cluster_id", state.cluster_id),
            backup_description=spec.get("description", state.backup_description),
            retention_period_in_days=spec.get(
                "retention_period_in_days", state.retention_period_in_days
            ),
            state=info.get("state"),
        )

    async def _state(self, account_id: str, project_id: str, backup_id: str) -> Optional[str]:
        data = await self.client.get(scope_path(account_id, project_id, "backups", backup_id))
        return ((data or {}).get("info") or {}).get("state")
