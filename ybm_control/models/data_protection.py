"""Backups, point-in-time recovery and disaster recovery state."""

from typing import List, Optional

from pydantic import BaseModel, Field


class Backup(BaseModel):
    account_id: Optional[str] = None
    project_id: Optional[str] = None
    backup_id: Optional[str] = None
    cluster_id: str
    backup_description: str = ""
    retention_period_in_days: int = Field(ge=1, default=1)
    state: Optional[str] = None


class PitrConfig(BaseModel):
    account_id: Optional[str] = None
    project_id: Optional[str] = None
    cluster_id: str
    pitr_config_id: Optional[str] = None
    namespace_name: str
    namespace_type: str                     # "YSQL" | "YCQL"
    namespace_id: Optional[str] = None
    retention_period_in_days: int = Field(ge=2, default=7)
    state: Optional[str] = None
    earliest_recovery_time_millis: Optional[int] = None
    latest_recovery_time_millis: Optional[int] = None


class PitrRestore(BaseModel):
    """A one-shot restore of a namespace to a point in time."""

    account_id: Optional[str] = None
    project_id: Optional[str] = None
    cluster_id: str
    pitr_config_id: str
    restore_at_millis: Optional[int] = None  # None restores to the latest point


class PitrClone(BaseModel):
    """A one-shot clone of a namespace as of a point in time."""

    account_id: Optional[str] = None
    project_id: Optional[str] = None
    cluster_id: str
    namespace_name: str
    namespace_type: str
    clone_as: str
    clone_at_millis: Optional[int] = None
    cloned_namespace_id: Optional[str] = None


class DrConfig(BaseModel):
    account_id: Optional[str] = None
    project_id: Optional[str] = None
    dr_config_id: Optional[str] = None
    name: str
    source_cluster_id: str
    target_cluster_id: str
    databases: List[str]
    state: Optional[str] = None
