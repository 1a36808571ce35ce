"""Maximum wait per operation kind. Every kind polls every 10 seconds."""

from typing import Dict, Optional

from ybm_control.config import PollingSettings
from ybm_control.models.reconciler import RetryPolicy
from ybm_control.models.task import OperationKind

_MINUTE = 60

MAX_DURATION_SECONDS: Dict[OperationKind, int] = {
    OperationKind.CREATE_CLUSTER: 60 * _MINUTE,
    OperationKind.EDIT_CLUSTER: 60 * _MINUTE,
    OperationKind.DELETE_CLUSTER: 60 * _MINUTE,
    OperationKind.PAUSE_CLUSTER: 20 * _MINUTE,
    OperationKind.RESUME_CLUSTER: 20 * _MINUTE,
    OperationKind.EDIT_ALLOW_LIST: 40 * _MINUTE,
    OperationKind.CREATE_BACKUP: 10 * _MINUTE,
    OperationKind.DELETE_BACKUP: 5 * _MINUTE,
    OperationKind.BULK_ENABLE_DB_PITR: 60 * _MINUTE,
    OperationKind.UPDATE_DB_PITR: 60 * _MINUTE,
    OperationKind.DISABLE_DB_PITR: 60 * _MINUTE,
    OperationKind.RESTORE_DB_PITR: 60 * _MINUTE,
    OperationKind.CLONE_DB_PITR: 60 * _MINUTE,
    OperationKind.CREATE_DR: 60 * _MINUTE,
    OperationKind.EDIT_DR: 60 * _MINUTE,
    OperationKind.DELETE_DR: 60 * _MINUTE,
    OperationKind.CREATE_PRIVATE_ENDPOINT: 40 * _MINUTE,
    OperationKind.EDIT_PRIVATE_ENDPOINT: 40 * _MINUTE,
    OperationKind.DELETE_PRIVATE_ENDPOINT: 40 * _MINUTE,
    OperationKind.CREATE_VPC: 10 * _MINUTE,
    OperationKind.DELETE_VPC: 5 * _MINUTE,
    OperationKind.CREATE_READ_REPLICA: 60 * _MINUTE,
    OperationKind.EDIT_READ_REPLICA: 60 * _MINUTE,
    OperationKind.DELETE_READ_REPLICA: 60 * _MINUTE,
    OperationKind.ENABLE_DATABASE_AUDIT_LOGGING: 40 * _MINUTE,
    OperationKind.EDIT_DATABASE_AUDIT_LOGGING: 40 * _MINUTE,
    OperationKind.DISABLE_DATABASE_AUDIT_LOGGING: 40 * _MINUTE,
    OperationKind.ENABLE_DATABASE_QUERY_LOGGING: 40 * _MINUTE,
    OperationKind.EDIT_DATABASE_QUERY_LOGGING: 40 * _MINUTE,
    OperationKind.DISABLE_DATABASE_QUERY_LOGGING: 40 * _MINUTE,
    OperationKind.CONFIGURE_METRICS_EXPORTER: 40 * _MINUTE,
    OperationKind.REMOVE_METRICS_EXPORTER: 40 * _MINUTE,
}


def policy_for(kind: OperationKind, settings: Optional[PollingSettings] = None) -> RetryPolicy:
    """Build a fresh policy for one operation. Policies are never shared."""
    settings = settings or PollingSettings()
    policy = RetryPolicy(
        max_duration_seconds=MAX_DURATION_SECONDS[kind],
        failure_budget=settings.read_failure_budget,
    )
    if settings.interval_seconds is not None:
        policy = policy.model_copy(update={"interval_seconds": settings.interval_seconds})
    return policy
