"""
Network allow lists.

Creation is synchronous on the remote; no task is polled. Deletion first
re-reads which clusters use the list, detaches it from each of them, waiting
for every EDIT_ALLOW_LIST task, then removes the list itself.
"""

import logging

from ybm_control.client.api import ApiError, scope_path
from ybm_control.errors import NotFoundError, RejectedError
from ybm_control.models.network import AllowList
from ybm_control.models.task import EntityType, OperationKind
from ybm_control.resources.base import ResourceHandler
from ybm_control.resources.common import find_by_name, preserve_order

logger = logging.getLogger(__name__)


class AllowListHandler(ResourceHandler[AllowList]):
    type_name = "allow_list"
    model = AllowList
    label = "allow list"
    id_field = "allow_list_id"

    async def create(self, plan: AllowList) -> AllowList:
        summary = "Unable to create allow list:"
        account_id, project_id = await self.scope(plan)

        try:
            existing = await find_by_name(
                self.client, account_id, project_id, "allow-lists", plan.allow_list_name
            )
        except ApiError as exc:
            raise RejectedError(summary, exc.detail) from exc
        if existing is not None:
            raise RejectedError(summary, f"Allow list {plan.allow_list_name} already exists.")

        try:
            created = await self.client.post(
                scope_path(account_id, project_id, "allow-lists"),
                {
                    "name": plan.allow_list_name,
                    "description": plan.allow_list_description,
                    "allow_list": list(plan.cidr_list),
                },
            )
        except ApiError as exc:
            raise RejectedError(summary, exc.detail) from exc

        prior = plan.model_copy(
            update={
                "account_id": account_id,
                "project_id": project_id,
                "allow_list_id": (created.get("info") or {}).get("id"),
            }
        )
        return await self.reconciler.confirm(
            lambda: self.fetch(prior), action="allow list creation", summary=summary
        )

    async def delete(self, state: AllowList) -> None:
        summary = "Unable to delete the allow list:"
        path = scope_path(state.account_id, state.project_id, "allow-lists", state.allow_list_id)
        try:
            current = await self.remote_get(path) or {}
        except NotFoundError:
            logger.debug("Allow list %s already gone", state.allow_list_id)
            return

        for cluster_id in (current.get("info") or {}).get("cluster_ids") or []:
            await self._detach(state, cluster_id, summary)

        try:
            await self.client.delete(path)
        except ApiError as exc:
            if not exc.not_found:
                raise RejectedError(summary, exc.detail) from exc

    async def fetch(self, state: AllowList) -> AllowList:
        allow_list_id = state.allow_list_id
        if not allow_list_id:
            found = await find_by_name(
                self.client, state.account_id, state.project_id, "allow-lists",
                state.allow_list_name,
            )
            if found is None:
                raise NotFoundError(
                    "The allow list was not found.",
                    f"Allow list {state.allow_list_name} not found.",
                )
            allow_list_id = (found.get("info") or {}).get("id")

        data = await self.remote_get(
            scope_path(state.account_id, state.project_id, "allow-lists", allow_list_id)
        )
        spec = data.get("spec") or {}
        info = data.get("info") or {}
        return AllowList(
            account_id=state.account_id,
            project_id=state.project_id,
            allow_list_id=allow_list_id,
            allow_list_name=spec.get("name", state.allow_list_name),
            allow_list_description=spec.get("description", ""),
            cidr_list=preserve_order(state.cidr_list, spec.get("allow_list") or []),
            cluster_ids=info.get("cluster_ids") or [],
        )

    async def _detach(self, state: AllowList, cluster_id: str, summary: str) -> None:
        account_id, project_id = state.account_id, state.project_id
        cluster_path = scope_path(account_id, project_id, "clusters", cluster_id)
        try:
            cluster = await self.client.get(cluster_path) or {}
            attached = await self.client.get(f"{cluster_path}/allow-lists") or []
        except ApiError as exc:
            if exc.not_found:
                logger.debug("Cluster %s no longer exists, nothing to detach", cluster_id)
                return
            raise RejectedError(
                summary, f"Unable to check cluster {cluster_id}: {exc.detail}"
            ) from exc

        if ((cluster.get("info") or {}).get("state") or "").upper() == "DELETING":
            logger.debug("Cluster %s is being deleted, nothing to detach", cluster_id)
            return

        remaining = [
            (a.get("info") or {}).get("id")
            for a in attached
            if (a.get("info") or {}).get("id") != state.allow_list_id
        ]

        async def submit() -> None:
            await self.client.put(f"{cluster_path}/allow-lists", remaining)

        await self.reconciler.reconcile(
            self.describe(
                account_id, project_id, EntityType.CLUSTER,
                OperationKind.EDIT_ALLOW_LIST, cluster_id,
            ),
            self.policy(OperationKind.EDIT_ALLOW_LIST),
            submit,
            action="allow list removal",
            summary=summary,
        )
