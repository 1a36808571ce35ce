"""Process-level configuration: remote API credentials, polling overrides, logging."""

import logging
import os
from typing import Optional

from pydantic import BaseModel, Field

from ybm_control.errors import ConfigurationError
from ybm_control.models.reconciler import DEFAULT_READ_FAILURE_BUDGET

VERSION = "0.1.0"

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class ApiSettings(BaseModel):
    """Where the management API lives and how to authenticate against it."""

    host: str = "localhost:9000"
    auth_token: str = Field(repr=False)
    use_secure_host: bool = True
    request_timeout_seconds: float = Field(gt=0, default=30.0)
    user_agent: str = f"ybm-control/{VERSION}"

    @property
    def base_url(self) -> str:
        scheme = "https" if self.use_secure_host else "http"
        return f"{scheme}://{self.host}/api/public/v1"


class PollingSettings(BaseModel):
    interval_seconds: Optional[float] = Field(gt=0, default=None)  # None keeps per-operation interval
    read_failure_budget: int = Field(ge=1, default=DEFAULT_READ_FAILURE_BUDGET)


class Settings(BaseModel):
    api: ApiSettings
    polling: PollingSettings = PollingSettings()
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from the environment. The auth token is mandatory."""
        token = os.getenv("YBM_AUTH_TOKEN") or os.getenv("YB_AUTH_TOKEN")
        if not token:
            raise ConfigurationError(
                "Missing authentication token",
                "You must provide an authentication token (YBM_AUTH_TOKEN).",
            )

        interval = os.getenv("YBM_POLL_INTERVAL_SECONDS")
        try:
            return cls(
                api=ApiSettings(
                    host=os.getenv("YBM_HOST") or os.getenv("YB_CLOUD_HOST") or "localhost:9000",
                    auth_token=token,
                    use_secure_host=_env_bool("YBM_USE_SECURE_HOST", default=True),
                    request_timeout_seconds=float(
                        os.getenv("YBM_REQUEST_TIMEOUT_SECONDS", "30")
                    ),
                ),
                polling=PollingSettings(
                    interval_seconds=float(interval) if interval else None,
                    read_failure_budget=int(
                        os.getenv("YBM_READ_FAILURE_BUDGET", str(DEFAULT_READ_FAILURE_BUDGET))
                    ),
                ),
                log_level=os.getenv("YBM_LOG_LEVEL", "INFO").upper(),
            )
        except ValueError as exc:
            raise ConfigurationError("Invalid configuration", str(exc)) from exc


def configure_logging(level: str = "INFO") -> None:
    """Attach a stream handler to the package logger once and set its level."""
    package_logger = logging.getLogger("ybm_control")
    package_logger.setLevel(level)
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        package_logger.addHandler(handler)


def _env_bool(name: str, *, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")
