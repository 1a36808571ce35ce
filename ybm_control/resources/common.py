"""Lookups and helpers shared by several resource handlers."""

import base64
import logging
from typing import Any, Iterable, List, Optional, Sequence, Tuple, TypeVar

from ybm_control.client.api import ApiError, ManagementClient, scope_path
from ybm_control.errors import RejectedError, StatusUnavailableError, truncate_detail
from ybm_control.reconciler.status import EntityStateProbe

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def resolve_scope(
    client: ManagementClient,
    account_id: Optional[str] = None,
    project_id: Optional[str] = None,
) -> Tuple[str, str]:
    """
    Fill in missing account/project ids from the account listing.

    Resolution only succeeds when exactly one account (and within it exactly
    one project) exists. Anything else is ambiguous and is rejected.
    """
    if account_id and project_id:
        return account_id, project_id

    try:
        accounts = await client.list_accounts()
    except ApiError as exc:
        raise RejectedError("Unable to get account ID", exc.detail) from exc

    if not account_id:
        if len(accounts) != 1:
            raise RejectedError(
                "Unable to get account ID",
                "Either there are no accounts or more than one account. "
                "Please provide an account ID.",
            )
        account_id = (accounts[0].get("info") or {}).get("id")
        if not account_id:
            raise RejectedError("Unable to get account ID", "The account listing has no id.")

    if not project_id:
        account = next(
            (a for a in accounts if (a.get("info") or {}).get("id") == account_id),
            None,
        )
        projects = ((account or {}).get("info") or {}).get("projects") or []
        if len(projects) != 1:
            raise RejectedError(
                "Unable to get project ID",
                "Either there are no projects or more than one project. "
                "Please provide a project ID.",
            )
        project_id = projects[0].get("id")

    logger.debug("Resolved scope: account %s, project %s", account_id, project_id)
    return account_id, project_id


def preserve_order(preferred: Optional[Sequence[T]], observed: Iterable[T]) -> List[T]:
    """
    Return `preferred` when it holds the same elements as `observed`.

    The remote does not keep the order in which set-like fields were given.
    Reporting them back reordered would look like drift to the host.
    """
    observed = list(observed)
    if preferred is not None and sorted(map(repr, preferred)) == sorted(map(repr, observed)):
        return list(preferred)
    return observed


def b64(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def created_id(payload: Any, summary: str) -> str:
    """
    Pull the new entity's id out of a create response.

    Bulk endpoints answer with a list; the first item is the one created.
    The remote has accepted the request by now, so a response without an id
    leaves an operation that cannot be tracked: StatusUnavailableError.
    """
    item = payload[0] if isinstance(payload, list) and payload else payload
    info = item.get("info") if isinstance(item, dict) else None
    entity_id = info.get("id") if isinstance(info, dict) else None
    if not isinstance(entity_id, str) or not entity_id:
        raise StatusUnavailableError(
            summary,
            "The request was accepted but the response carries no id to track it by: "
            + truncate_detail(repr(payload)),
        )
    return entity_id


async def find_by_name(
    client: ManagementClient,
    account_id: str,
    project_id: str,
    collection: str,
    name: str,
) -> Optional[dict]:
    """Search a paginated project listing for an item whose spec.name matches."""
    async for page in client.iter_pages(scope_path(account_id, project_id, collection)):
        for item in page:
            if (item.get("spec") or {}).get("name") == name:
                return item
    return None


async def find_namespace(
    client: ManagementClient,
    account_id: str,
    project_id: str,
    cluster_id: str,
    name: str,
    namespace_type: str,
) -> Optional[dict]:
    namespaces = await client.get(
        scope_path(account_id, project_id, "clusters", cluster_id, "namespaces")
    ) or []
    for namespace in namespaces:
        if namespace.get("name") == name and (
            namespace.get("table_type", "").upper() == namespace_type.upper()
        ):
            return namespace
    return None


def cluster_state_probe(
    client: ManagementClient,
    account_id: str,
    project_id: str,
    cluster_id: str,
    succeeded: Iterable[str],
    failed: Iterable[str] = (),
) -> EntityStateProbe:
    """Probe that waits for a cluster to reach one of `succeeded` states."""

    async def fetch() -> Optional[str]:
        cluster = await client.get_cluster(account_id, project_id, cluster_id) or {}
        return (cluster.get("info") or {}).get("state")

    return EntityStateProbe(fetch, succeeded=succeeded, failed=failed)
