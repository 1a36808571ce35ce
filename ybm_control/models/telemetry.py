"""Cluster-attached logging and telemetry configuration."""

from typing import Any, Dict, Optional

from pydantic import BaseModel


class ClusterTelemetryConfig(BaseModel):
    """
    Association of an integration (log sink or metrics exporter) with a
    cluster. Used for DB audit logging, DB query logging and metrics export.
    """

    account_id: Optional[str] = None
    project_id: Optional[str] = None
    cluster_id: str
    integration_id: str
    config_id: Optional[str] = None         # remote id of the association
    log_config: Dict[str, Any] = {}         # exporter-specific settings
    state: Optional[str] = None
