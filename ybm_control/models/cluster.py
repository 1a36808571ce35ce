"""Cluster and read replica state — local representation of the remote entities."""

from typing import List, Optional

from pydantic import BaseModel, Field


class ClusterRegion(BaseModel):
    region: str
    num_nodes: int = Field(ge=1)
    vpc_id: Optional[str] = None
    is_default: bool = False


class NodeConfig(BaseModel):
    num_cores: int = Field(ge=1)
    disk_size_gb: Optional[int] = None
    disk_iops: Optional[int] = None


class DatabaseCredentials(BaseModel):
    username: str
    password: str


class ClusterEndpoint(BaseModel):
    region: str
    accessibility_type: str                 # "PUBLIC" | "PRIVATE"
    host: str


class Cluster(BaseModel):
    """A database cluster. Fields after the divider are computed by the remote."""

    account_id: Optional[str] = None
    project_id: Optional[str] = None
    cluster_id: Optional[str] = None
    cluster_name: str
    cloud_type: str = "AWS"                 # "AWS" | "GCP" | "AZURE"
    cluster_type: str = "SYNCHRONOUS"
    cluster_tier: str = "PAID"              # "FREE" | "PAID"
    fault_tolerance: str = "NONE"           # "NONE" | "NODE" | "ZONE" | "REGION"
    num_faults_to_tolerate: int = 0
    cluster_region_info: List[ClusterRegion]
    node_config: NodeConfig
    database_track: Optional[str] = None
    cluster_allow_list_ids: List[str] = []
    desired_state: str = "Active"           # "Active" | "Paused"
    credentials: Optional[DatabaseCredentials] = None

    # --- computed ---
    state: Optional[str] = None
    cluster_version: Optional[str] = None
    endpoints: List[ClusterEndpoint] = []


class ReadReplicaInfo(BaseModel):
    region: str
    num_nodes: int = Field(ge=1)
    num_cores: int = Field(ge=1)
    disk_size_gb: Optional[int] = None
    vpc_id: Optional[str] = None
    endpoint: Optional[str] = None


class ReadReplicas(BaseModel):
    """All read replicas of one primary cluster, managed as a single resource."""

    account_id: Optional[str] = None
    project_id: Optional[str] = None
    primary_cluster_id: str
    read_replicas_info: List[ReadReplicaInfo]
