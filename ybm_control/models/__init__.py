"""YBM control-plane data models."""

from ybm_control.models.cluster import (
    Cluster,
    ClusterEndpoint,
    ClusterRegion,
    DatabaseCredentials,
    NodeConfig,
    ReadReplicaInfo,
    ReadReplicas,
)
from ybm_control.models.data_protection import (
    Backup,
    DrConfig,
    PitrClone,
    PitrConfig,
    PitrRestore,
)
from ybm_control.models.network import (
    AllowList,
    PrivateServiceEndpoint,
    Vpc,
    VpcRegionCidr,
)
from ybm_control.models.reconciler import (
    FailureBudget,
    FailureKind,
    OutcomeKind,
    ProbeOutcome,
    RetryPolicy,
)
from ybm_control.models.task import (
    EntityType,
    OperationDescriptor,
    OperationKind,
    TaskStatus,
    TaskStatusReading,
)
from ybm_control.models.telemetry import ClusterTelemetryConfig

__all__ = [
    "AllowList",
    "Backup",
    "Cluster",
    "ClusterEndpoint",
    "ClusterRegion",
    "ClusterTelemetryConfig",
    "DatabaseCredentials",
    "DrConfig",
    "EntityType",
    "FailureBudget",
    "FailureKind",
    "NodeConfig",
    "OperationDescriptor",
    "OperationKind",
    "OutcomeKind",
    "PitrClone",
    "PitrConfig",
    "PitrRestore",
    "PrivateServiceEndpoint",
    "ProbeOutcome",
    "ReadReplicaInfo",
    "ReadReplicas",
    "RetryPolicy",
    "TaskStatus",
    "TaskStatusReading",
    "Vpc",
    "VpcRegionCidr",
]
