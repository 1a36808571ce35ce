"""Background task coordinates and observed task status."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class TaskStatus(str, Enum):
    """
    Task states as reported by the remote system.

    Only SUCCEEDED and FAILED are terminal. TASK_NOT_FOUND is reported when
    no task matches the requested coordinates (yet). UNKNOWN covers any
    value the remote reports that this client does not recognise.
    """
    IN_PROGRESS = "IN_PROGRESS"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    TASK_NOT_FOUND = "TASK_NOT_FOUND"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Optional[str]) -> "TaskStatus":
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.upper())
        except ValueError:
            return cls.UNKNOWN

    @property
    def terminal(self) -> bool:
        return self in (TaskStatus.SUCCEEDED, TaskStatus.FAILED)


class EntityType(str, Enum):
    CLUSTER = "CLUSTER"
    BACKUP = "BACKUP"
    ALLOW_LIST = "ALLOW_LIST"
    VPC = "VPC"
    PRIVATE_SERVICE_ENDPOINT = "PRIVATE_SERVICE_ENDPOINT"


class OperationKind(str, Enum):
    """
    Kinds of remote mutation the client waits on.

    Members backed by a remote background task use the remote task type
    name as their value. The remaining kinds are confirmed by polling the
    entity's own state (see reconciler.status).
    """
    # Task-backed
    CREATE_CLUSTER = "CREATE_CLUSTER"
    EDIT_CLUSTER = "EDIT_CLUSTER"
    DELETE_CLUSTER = "DELETE_CLUSTER"
    EDIT_ALLOW_LIST = "EDIT_ALLOW_LIST"
    BULK_ENABLE_DB_PITR = "BULK_ENABLE_DB_PITR"
    UPDATE_DB_PITR = "UPDATE_DB_PITR"
    DISABLE_DB_PITR = "DISABLE_DB_PITR"
    RESTORE_DB_PITR = "RESTORE_DB_PITR"
    CLONE_DB_PITR = "CLONE_DB_PITR"
    CREATE_DR = "CREATE_DR"
    EDIT_DR = "EDIT_DR"
    DELETE_DR = "DELETE_DR"
    ENABLE_DATABASE_AUDIT_LOGGING = "ENABLE_DATABASE_AUDIT_LOGGING"
    EDIT_DATABASE_AUDIT_LOGGING = "EDIT_DATABASE_AUDIT_LOGGING"
    DISABLE_DATABASE_AUDIT_LOGGING = "DISABLE_DATABASE_AUDIT_LOGGING"
    ENABLE_DATABASE_QUERY_LOGGING = "ENABLE_DATABASE_QUERY_LOGGING"
    EDIT_DATABASE_QUERY_LOGGING = "EDIT_DATABASE_QUERY_LOGGING"
    DISABLE_DATABASE_QUERY_LOGGING = "DISABLE_DATABASE_QUERY_LOGGING"
    CONFIGURE_METRICS_EXPORTER = "CONFIGURE_METRICS_EXPORTER"
    REMOVE_METRICS_EXPORTER = "REMOVE_METRICS_EXPORTER"

    # Entity-state backed
    PAUSE_CLUSTER = "PAUSE_CLUSTER"
    RESUME_CLUSTER = "RESUME_CLUSTER"
    CREATE_BACKUP = "CREATE_BACKUP"
    DELETE_BACKUP = "DELETE_BACKUP"
    CREATE_VPC = "CREATE_VPC"
    DELETE_VPC = "DELETE_VPC"
    CREATE_PRIVATE_ENDPOINT = "CREATE_PRIVATE_ENDPOINT"
    EDIT_PRIVATE_ENDPOINT = "EDIT_PRIVATE_ENDPOINT"
    DELETE_PRIVATE_ENDPOINT = "DELETE_PRIVATE_ENDPOINT"
    CREATE_READ_REPLICA = "CREATE_READ_REPLICA"
    EDIT_READ_REPLICA = "EDIT_READ_REPLICA"
    DELETE_READ_REPLICA = "DELETE_READ_REPLICA"


class OperationDescriptor(BaseModel):
    """
    Identifies which background task to look for.

    Immutable. entity_id may be left unset for creates whose identifier is
    only known once the remote accepts the request; the reconciler binds it
    from the mutation result.
    """
    model_config = ConfigDict(frozen=True)

    account_id: str
    project_id: str
    entity_id: Optional[str] = None
    entity_type: EntityType
    kind: OperationKind

    def bind(self, entity_id: str) -> "OperationDescriptor":
        return self.model_copy(update={"entity_id": entity_id})


class TaskStatusReading(BaseModel):
    """One observation of a task's status. ok=False means the read itself failed."""

    status: TaskStatus = TaskStatus.UNKNOWN
    ok: bool = True
    message: str = ""
    raw_state: Optional[str] = None         # value as reported, before parsing

    @classmethod
    def observed(cls, raw_state: Optional[str]) -> "TaskStatusReading":
        return cls(status=TaskStatus.parse(raw_state), raw_state=raw_state)

    @classmethod
    def unavailable(cls, message: str) -> "TaskStatusReading":
        return cls(ok=False, message=message)
